import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stockflow.dsl import BlockKind, RawExpression, parse_declarations, parse_dsl
from stockflow.dsl.parser import classify_value
from stockflow.engine import EXTERNAL


def test_declarations_follow_source_order(population_dsl):
    decls = parse_declarations(population_dsl)
    assert [(d.kind, d.name) for d in decls] == [
        (BlockKind.STOCK, "Population"),
        (BlockKind.STOCK, "Resources"),
        (BlockKind.FLOW, "Births"),
        (BlockKind.FLOW, "Deaths"),
        (BlockKind.FLOW, "Consumption"),
        (BlockKind.TERMINATE, "terminate"),
        (BlockKind.GRAPH, "Population_vs_Resources"),
    ]


def test_property_values_are_classified(population_dsl):
    decls = {d.name: d for d in parse_declarations(population_dsl)}
    population = decls["Population"]
    assert population.get("initial") == 100.0
    assert isinstance(population.get("initial"), float)
    assert population.get("units") == "people"
    assert not isinstance(population.get("units"), RawExpression)

    births = decls["Births"]
    assert isinstance(births.get("rate"), RawExpression)
    assert births.get("rate") == "Population * 0.02"
    assert births.get("from") == "source"


def test_ternary_colons_stay_in_the_value(population_dsl):
    decls = {d.name: d for d in parse_declarations(population_dsl)}
    assert decls["Deaths"].get("rate") == "Population * (0.01 + (Resources < 50 ? 0.25 : 0))"


@pytest.mark.parametrize(
    "text, expected",
    [
        ('"hello world"', "hello world"),
        ("42", 42.0),
        ("-3.5", -3.5),
        ("1e3", 1000.0),
        (".5", 0.5),
        ("", 0.0),
    ],
)
def test_classify_value_literals(text, expected):
    assert classify_value(text) == expected


def test_classify_value_falls_back_to_expression():
    value = classify_value("Stock * 2")
    assert isinstance(value, RawExpression)
    assert value == "Stock * 2"


def test_comments_blank_and_unknown_lines_are_skipped():
    source = """
    // a comment
    this line means nothing

    stock A {
      // inside comment
      initial: 5
      gibberish without colon
    }
    }
    """
    decls = parse_declarations(source)
    assert len(decls) == 1
    assert decls[0].name == "A"
    assert decls[0].properties == {"initial": 5.0}


def test_constant_declarations():
    decls = parse_declarations("const RATE = 0.5\nconst DOUBLE = RATE * 2\n")
    assert [d.kind for d in decls] == [BlockKind.CONST, BlockKind.CONST]
    assert decls[0].get("value") == 0.5
    assert decls[1].get("value") == RawExpression("RATE * 2")


def test_lookup_points_and_dropped_groups():
    source = """
    lookup Effect {
      [0, 1]
      [ 10 , 0.5 ]
      [oops, 2]
      [5, 0.75]
    }
    lookup2d Surface {
      [0, 0]: 1
      [1, 0]: 2
      [x, 1]: 3
      [1, 1]: nope
    }
    """
    decls = {d.name: d for d in parse_declarations(source)}
    assert decls["Effect"].kind is BlockKind.LOOKUP
    assert decls["Effect"].points == [(0.0, 1.0), (10.0, 0.5), (5.0, 0.75)]
    assert decls["Surface"].kind is BlockKind.LOOKUP2D
    assert decls["Surface"].points == [(0.0, 0.0, 1.0), (1.0, 0.0, 2.0)]


def test_extra_coordinates_in_point_lines_are_ignored():
    source = """
    lookup Curve {
      [1, 2, 3]
      [4, 5,]
    }
    lookup2d Grid {
      [0, 1, 9]: 2
    }
    """
    decls = {d.name: d for d in parse_declarations(source)}
    assert decls["Curve"].points == [(1.0, 2.0), (4.0, 5.0)]
    assert decls["Grid"].points == [(0.0, 1.0, 2.0)]


def test_unclosed_block_is_discarded():
    source = "stock A {\n initial: 1\nstock B {\n initial: 2\n}\nflow F {\n rate: 1\n"
    decls = parse_declarations(source)
    assert [d.name for d in decls] == ["B"]


def test_parse_dsl_builds_model(population_model):
    model = population_model
    assert set(model.stocks) == {"Population", "Resources"}
    assert model.stocks["Population"].min_value == 0.0
    assert model.stocks["Population"].units == "people"
    births = model.flows["Births"]
    assert births.source is EXTERNAL
    assert births.target is model.stocks["Population"]
    assert births.rate_text == "Population * 0.02"
    assert model.flows["Deaths"].dependencies == ("Population", "Resources")
    assert model.termination_text == "Population <= 5 || Resources <= 0"
    assert len(model.history) == 1
    assert model.history[0].values == {"Population": 100.0, "Resources": 100.0}


def test_graph_declarations_pass_through(population_model):
    graph = population_model.graphs["Population_vs_Resources"]
    assert graph.title == "Population vs Resources"
    assert graph.variables == ["Population", "Resources"]
    assert graph.type == "line"
    assert graph.y_axis_label == "Count"
    assert graph.color is None


def test_constants_resolve_in_order():
    model = parse_dsl(
        """
        const A = 2
        const B = A * 3
        const C = sqrt(16) + max(A, B)
        const Circle = 2 * PI
        """
    )
    assert model.constants["A"] == 2.0
    assert model.constants["B"] == 6.0
    assert model.constants["C"] == 10.0
    assert model.constants["Circle"] == pytest.approx(6.283185307)


def test_constants_cannot_read_stocks_or_later_constants():
    model = parse_dsl(
        """
        stock X {
          initial: 5
        }
        const FromStock = X * 2
        const Early = Late + 1
        const Late = 1
        """
    )
    assert model.constants["FromStock"] == 0.0
    assert model.constants["Early"] == 0.0
    assert model.constants["Late"] == 1.0
    sources = {d.source for d in model.diagnostics.records}
    assert "const FromStock" in sources
    assert "const Early" in sources


def test_stock_properties_may_use_constants():
    model = parse_dsl(
        """
        const START = 40
        stock Tank {
          initial: START / 2
          max: START
        }
        """
    )
    assert model.stocks["Tank"].value == 20.0
    assert model.stocks["Tank"].max_value == 40.0


def test_flow_endpoints_resolve_regardless_of_declaration_order():
    model = parse_dsl(
        """
        flow Fill {
          from: source
          to: Tank
          rate: 2
        }
        stock Tank {
          initial: 0
        }
        """
    )
    assert model.flows["Fill"].target is model.stocks["Tank"]
    model.step(1)
    assert model.stocks["Tank"].value == 2.0


def test_unknown_endpoint_is_external_with_diagnostic():
    model = parse_dsl(
        """
        stock Tank {
          initial: 10
        }
        flow Drain {
          from: Tank
          to: Nowhere
          rate: 1
        }
        """
    )
    assert model.flows["Drain"].target is EXTERNAL
    assert any("Nowhere" in d.message for d in model.diagnostics.records)
    model.step(1)
    assert model.stocks["Tank"].value == 9.0


def test_lookup_declarations_feed_the_model():
    model = parse_dsl(
        """
        lookup Effect {
          [10, 10]
          [0, 0]
        }
        stock Level {
          initial: 5
        }
        flow Out {
          from: Level
          to: sink
          rate: LOOKUP(Level, Effect) / 10
        }
        """
    )
    assert model.lookup_tables["Effect"].points == [(0.0, 0.0), (10.0, 10.0)]
    model.step(1)
    assert model.stocks["Level"].value == pytest.approx(4.5)
