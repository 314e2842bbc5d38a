# tcpcalc

`tcpcalc` has two parts. The first is a small TCP server that evaluates integer
arithmetic expressions. The second is a client that opens many connections at
once. It sends each expression in random fragments and checks the answers it
gets back.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## The server

```
tcpcalc-server <port>
```

The server listens on every interface (`0.0.0.0`) and prints
`Server listening on port <port>` when it starts.

For each connection it does the following:

1. It reads one chunk of up to 1023 bytes.
2. It splits the chunk on whitespace and evaluates each token as an expression.
3. It writes back all the results on one line. Each result is followed by a space, and the line ends in a newline. A token that cannot be evaluated gives `ERROR`.
4. It closes the connection.

Expressions can contain:

- non-negative integers
- the operators `+`, `-`, `*` and `/`
- unary signs
- parentheses

An expression may not contain spaces. Division is integer division that
truncates toward zero. Dividing by zero is an error.

```
$ printf '2+3*4 (1+2)*3 7/0 ' | nc localhost 9000
14 9 ERROR 
```

If you give the wrong number of arguments, an invalid port, or a port the
server cannot bind, the command exits with status 1.

## The client

```
tcpcalc-client <n> <connections> <server_addr> <server_port>
```

- `n`: how many operands go into each generated expression. Must be positive.
- `connections`: how many TCP sessions to open to the server. Must be positive.
- `server_addr`: the server's IPv4 address
- `server_port`: the server's port, from 1 to 65535

Each session works like this:

1. The client builds a random expression from numbers between 1 and 100, joined by random operators.
2. It sends the expression in randomly sized fragments, followed by a single space.
3. It compares the first word of the server's reply with the result it computes itself.

Matching results are printed to standard output and marked `OK`. Other outcomes
are printed to standard error:

- `MISMATCH`
- `ERROR`
- `EMPTY`
- `PARSE_ERROR`
- `INVALID_RESPONSE`

## Using it as a library

```python
from tcpcalc.calculator import evaluate, CalculatorError
from tcpcalc.server import CalculatorServer, process_request

evaluate("-(3+4)*2")           # -14
process_request("1+1 5/0")     # "2 ERROR \n"

with CalculatorServer(0, "127.0.0.1") as server:
    host, port = server.address    # a property
    server.handle_once(1.0)        # number of events handled
```

`evaluate` raises `CalculatorError` (a `ValueError`) on invalid input.

The client side is in `tcpcalc.client`:

- `generate_expression(numbers, rng)` and `split_expression(expression, rng)` build the random input.
- `expected_result(expression)` evaluates an expression locally. It returns 0 if the expression cannot be evaluated.
- `verify_result(expression, response, expected)` returns an `Outcome`. The outcome has a `Verdict`, an `ok` flag and a `message()` report line.
- `CalculatorClient(config, rng=None).run()` drives every session described by a `ClientConfig` and returns the list of outcomes.
- `parse_args(argv)` builds a `ClientConfig` from the four command-line arguments.