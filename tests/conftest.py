from __future__ import annotations

import sys
from pathlib import Path
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

if sys.version_info < (3, 10):
    pytest.exit("stockflow requires Python 3.10+", returncode=0)


POPULATION_DSL = """\
// Population Growth with Resource Constraints
stock Population {
  initial: 100
  min: 0
  units: "people"
}

stock Resources {
  initial: 100
  min: 0
  units: "units"
}

flow Births {
  from: source
  to: Population
  rate: Population * 0.02
}

flow Deaths {
  from: Population
  to: sink
  rate: Population * (0.01 + (Resources < 50 ? 0.25 : 0))
}

flow Consumption {
  from: Resources
  to: sink
  rate: Population * 0.1
}

terminate {
  when: Population <= 5 || Resources <= 0
}

graph Population_vs_Resources {
  title: "Population vs Resources"
  variables: Population, Resources
  type: line
  yAxisLabel: "Count"
}
"""


@pytest.fixture
def population_dsl() -> str:
    return POPULATION_DSL


@pytest.fixture
def population_model():
    from stockflow.dsl import parse_dsl

    return parse_dsl(POPULATION_DSL)


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "population.sd"
    path.write_text(POPULATION_DSL, encoding="utf-8")
    return path
