"""Pytest configuration for the profsig tests

The repository root is put on the import path so that the tests run
against the working tree, whether or not the package is installed.
"""

import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
  sys.path.insert(0, str(ROOT_DIR))

from profsig import MinimizerOptions, Model, make_counting_workspace


@pytest.fixture(autouse=True)
def minimizer_defaults() :
  strategy, print_level = MinimizerOptions.strategy, MinimizerOptions.print_level
  MinimizerOptions.print_level = -1
  yield
  MinimizerOptions.strategy, MinimizerOptions.print_level = strategy, print_level


@pytest.fixture
def counting_ws() :
  return make_counting_workspace()


@pytest.fixture
def counting_model(counting_ws) :
  return Model.create(counting_ws)
