import socket

import pytest

from tcpcalc.calculator import evaluate
from tcpcalc.server import CalculatorServer, main, process_request


def _exchange(server, payload, max_rounds=10):
    client = socket.create_connection(server.address, timeout=5)
    try:
        client.sendall(payload)
        handled = 0
        for _ in range(max_rounds):
            handled += server.handle_once(0.5)
            if handled >= 2:
                break
        chunks = []
        while True:
            chunk = client.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)
    finally:
        client.close()


@pytest.fixture
def server():
    with CalculatorServer(0, "127.0.0.1") as srv:
        yield srv


def test_empty_request_gives_newline():
    assert process_request("") == "\n"
    assert process_request("   \t\n") == "\n"


def test_single_number_request():
    assert process_request("12") == "12 \n"


def test_results_joined_in_order():
    expected = f"{evaluate('1+1')} {evaluate('2*3')} \n"
    assert process_request("1+1 2*3") == expected


def test_errors_reported_in_place():
    assert process_request("12 abc 1/0 7") == "12 ERROR ERROR 7 \n"


def test_any_ascii_whitespace_separates():
    assert process_request("  7\t8\n9\r\n") == "7 8 9 \n"


def test_deep_nesting_is_an_error_not_a_crash():
    assert process_request("(" * 3000 + "1" + ")" * 3000) == "ERROR \n"


def test_address_reports_bound_port(server):
    host, port = server.address
    assert host == "127.0.0.1"
    assert 0 < port <= 65535


def test_server_answers_request(server):
    reply = _exchange(server, b"6 7 4*5")
    assert reply.decode() == f"6 7 {evaluate('4*5')} \n"


def test_server_stops_at_nul_byte(server):
    assert _exchange(server, b"5\x006") == b"5 \n"


def test_server_reports_error_tokens(server):
    assert _exchange(server, b"bad 3") == b"ERROR 3 \n"


def test_server_handles_successive_clients(server):
    assert _exchange(server, b"1") == b"1 \n"
    assert _exchange(server, b"2") == b"2 \n"


def test_closed_server_refuses_connections():
    srv = CalculatorServer(0, "127.0.0.1")
    address = srv.address
    srv.close()
    srv.close()
    with pytest.raises(OSError):
        socket.create_connection(address, timeout=2)


def test_main_without_arguments_prints_usage(capsys):
    assert main([]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_with_too_many_arguments(capsys):
    assert main(["1", "2"]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_rejects_non_numeric_port(capsys):
    assert main(["abc"]) == 1
    assert "Server error" in capsys.readouterr().err


def test_main_rejects_out_of_range_port(capsys):
    assert main(["70000"]) == 1
    assert "Server error" in capsys.readouterr().err