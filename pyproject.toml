[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tcpcalc"
version = "0.1.0"
description = "A TCP arithmetic-expression server and a load-testing client that checks its answers"
requires-python = ">=3.10"
dependencies = []
keywords = ["tcp", "calculator", "selectors", "load-testing", "expression-parser"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Testing :: Traffic Generation",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tcpcalc-server = "tcpcalc.server:main"
tcpcalc-client = "tcpcalc.client:main"

[tool.hatch.build.targets.wheel]
packages = ["tcpcalc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
