"""Unit tests for TaskDecomposer."""

import pytest

from taskengine.graph.nodes.decompose import TaskDecomposer, parse_components
from taskengine.utils.error_handler import DecompositionParseError

PRICE_TREND_REPLY = """Here you go:
{"components": [
  {"id": "fetch_price", "type": "data_collection", "description": "Fetch latest BTC price",
   "dependencies": [], "outputData": ["price"]},
  {"id": "summarize", "type": "analysis", "description": "Summarize the trend",
   "dependencies": ["fetch_price", "ghost"], "requiredData": ["price"]}
]}"""


@pytest.mark.asyncio
async def test_decompose_price_trend(scripted_oracle):
    oracle = scripted_oracle({"decompose": PRICE_TREND_REPLY})
    components = await TaskDecomposer(oracle).decompose("fetch latest price of BTC and summarize the trend")

    assert [c.type for c in components] == ["data_collection", "analysis"]
    assert components[1].dependencies == ["fetch_price"]
    assert components[1].required_data == ["price"]
    assert components[0].output_data == ["price"]
    assert oracle.count("decompose") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    ["", "I cannot do that", "{\"components\": []}", "[1, 2, 3]", "{\"components\": [", "{\"steps\": []}"],
)
async def test_malformed_output_yields_single_component(scripted_oracle, reply):
    components = await TaskDecomposer(scripted_oracle({"decompose": reply})).decompose("do the thing")

    assert len(components) == 1
    assert components[0].type == "analysis"
    assert "do the thing" in components[0].description


@pytest.mark.asyncio
async def test_oracle_failure_yields_single_component(scripted_oracle):
    oracle = scripted_oracle({"decompose": RuntimeError("model down")})
    components = await TaskDecomposer(oracle).decompose("objective")
    assert len(components) == 1


def test_bare_array_with_defaults():
    components = parse_components('[{"type": "weird"}, {"id": "x", "type": "output", "optional": true}]')

    assert components[0].id == "component_1"
    assert components[0].type == "analysis"
    assert components[0].description == "Component 1"
    assert components[1].optional is True


def test_parse_rejects_missing_list():
    with pytest.raises(DecompositionParseError):
        parse_components('{"note": "nothing"}')
