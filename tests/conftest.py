# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

GO_SOURCE = """package main

import "fmt"

func main() {
\tfoo := bar()
\tfmt.Println(foo)
}
"""


@pytest.fixture
def go_file(tmp_path: Path) -> Path:
    """Write a small Go program and return its path."""
    path = tmp_path / "main.go"
    path.write_text(GO_SOURCE, encoding="utf-8")
    return path
