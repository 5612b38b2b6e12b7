from devinv.export import (
    DEVICE_EXPORT_HEADERS,
    device_rows,
    export_to_delimited_text,
    write_export,
)
from devinv.schemas import DeviceRecord


def test_header_and_one_line_per_record():
    records = [
        DeviceRecord(id=1, user_id=1, name="Sensor1", type="Sensor", ip_address="192.168.1.50", calibration=1.5),
        DeviceRecord(id=2, user_id=1, name="Valve", type="Actuator", ip_address="10.0.0.2", calibration=-2.0),
    ]
    text = export_to_delimited_text(device_rows(records), DEVICE_EXPORT_HEADERS)
    assert text.splitlines() == [
        "ID;User_ID;Name;Type;IP;Calibration",
        "1;1;Sensor1;Sensor;192.168.1.50;1.5",
        "2;1;Valve;Actuator;10.0.0.2;-2.0",
    ]


def test_delimiter_inside_value_is_replaced():
    text = export_to_delimited_text([("a;b", None, 3)], ["X", "Y", "Z"])
    assert text == "X;Y;Z\na,b;;3\n"


def test_custom_delimiter():
    text = export_to_delimited_text([("a|b", "c")], ["H1", "H2"], delimiter="|", replacement="/")
    assert text == "H1|H2\na/b|c\n"


def test_empty_rows_give_header_only():
    assert export_to_delimited_text([], ["A"]) == "A\n"


def test_write_export(tmp_path):
    path = write_export(tmp_path / "out.csv", "A;B\n")
    assert path.read_text(encoding="utf-8") == "A;B\n"


def test_line_breaks_stay_inside_one_record():
    rows = [(1, 1, "Rack A\nslot 3", "Gen\r\neric", "10.0.0.1", 0.0)]
    lines = export_to_delimited_text(rows, DEVICE_EXPORT_HEADERS).splitlines()
    assert lines == [
        "ID;User_ID;Name;Type;IP;Calibration",
        "1;1;Rack A slot 3;Gen eric;10.0.0.1;0.0",
    ]


def test_delimiter_inside_header_is_replaced():
    text = export_to_delimited_text([("a", "b")], ["Name;Alias", "IP"])
    assert text.splitlines() == ["Name,Alias;IP", "a;b"]
