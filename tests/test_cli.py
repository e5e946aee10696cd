import httpx
import pytest

from gocomet_rides import cli
from gocomet_rides.client import RideServiceClient


@pytest.fixture
def wired(monkeypatch, app):
    def factory(base_url=None, *, timeout=None, **kw):
        return RideServiceClient(base_url, timeout=timeout, transport=httpx.ASGITransport(app=app))

    monkeypatch.setattr(cli, "RideServiceClient", factory)


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_book_board_accept_finish(wired, capsys):
    rc = cli.main(["book", "--user", "cli-user", "--source", "12.9716,77.5946", "--destination", "13.0827,80.2707"])
    out = capsys.readouterr().out
    assert rc == 0
    ride_id = out.strip().rsplit(" ", 1)[-1]

    assert cli.main(["board", "--driver", "cli-D1"]) == 0
    assert f"#{ride_id}" in capsys.readouterr().out

    assert cli.main(["accept", "--driver", "cli-D1", "--ride", ride_id]) == 0
    assert "IN_PROGRESS" in capsys.readouterr().out

    assert cli.main(["finish", "--driver", "cli-D2", "--ride", ride_id]) == 1
    assert "error:" in capsys.readouterr().err

    assert cli.main(["finish", "--driver", "cli-D1", "--ride", ride_id]) == 0
    assert "fare" in capsys.readouterr().out


def test_bad_coordinates_exit_nonzero(wired, capsys):
    rc = cli.main(["book", "--user", "u", "--source", "100,0", "--destination", "1,1"])
    assert rc == 2
    assert "error:" in capsys.readouterr().err


def test_report_location(wired, capsys):
    assert cli.main(["report-location", "--driver", "cli-D1", "--at", "12.9716,77.5946"]) == 0
    assert "reported" in capsys.readouterr().out


def test_cancel_unknown_ride(wired, capsys):
    assert cli.main(["cancel", "--ride", "999999"]) == 1
