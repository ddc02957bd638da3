import tempfile
from unittest.mock import Mock

from davcal.davclient import DAVClient
from davcal.lib import error
from davcal.protocol import DAVResponse


class TestErrors:
    def test_dav_error_str(self):
        e = error.DAVError(url="https://cal.example.com/x.ics", reason="gone")
        assert str(e) == "DAVError at 'https://cal.example.com/x.ics', reason gone"

    def test_ics_build_error(self):
        e = error.IcsBuildError(reason="invalid date")
        assert isinstance(e, ValueError)
        assert str(e) == "invalid date"

    def test_errmsg(self):
        response = DAVResponse(status=412, headers={}, body=b"x" * 1000)
        msg = error.errmsg(response)
        assert msg.startswith("412 Precondition Failed")
        assert len(msg) < 600


class TestCommunicationDump:
    def test_dump_leaves_out_authorization(self, monkeypatch, tmp_path):
        monkeypatch.setattr(error, "debug_dump_communication", True)
        monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
        client = DAVClient(
            url="https://cal.example.com", username="u", password="secret", io=Mock()
        )
        client.io.execute.return_value = DAVResponse(
            status=204, headers={"ETag": '"2"'}, body=b""
        )
        assert client.delete_event("/x.ics", '"1"').is_success

        dumps = list(tmp_path.glob("davcalcomm*"))
        assert len(dumps) == 1
        text = dumps[0].read_bytes()
        assert b"DELETE https://cal.example.com/x.ics" in text
        assert b'If-Match: "1"' in text
        assert b"204 No Content" in text
        assert b"Authorization" not in text

    def test_no_dump_when_switched_off(self, monkeypatch, tmp_path):
        monkeypatch.setattr(error, "debug_dump_communication", False)
        monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
        client = DAVClient(
            url="https://cal.example.com", username="u", password="secret", io=Mock()
        )
        client.io.execute.return_value = DAVResponse(status=204, headers={}, body=b"")
        assert client.delete_event("/x.ics", '"1"').is_success
        assert not list(tmp_path.glob("davcalcomm*"))
