from __future__ import annotations


def pytest_addoption(parser):
    parser.addoption(
        "--run-remote",
        action="store_true",
        default=False,
        help="Run doc snippets that download result catalogs from HF Hub.",
    )
