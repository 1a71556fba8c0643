import asyncio
import json

import httpx
import pytest
from testkit import make_image_bytes

from src.application.use_cases.generate_plans import (
    OpenRouterPlanner,
    PlannerChain,
    parse_tool_calls,
)
from src.domain.entities.operation import OperationKind
from src.domain.entities.planning import PlanStatus
from src.domain.errors import ArgumentsUnparsable, ToolCallMissing
from src.domain.services.plan_catalog import FIXED_PLANS, FixedPlanSource, fit_to_count
from src.infrastructure.llm.openrouter_client import OpenRouterClient


def _tool_call(variations, as_string=True):
    arguments = {"variations": variations}
    return {
        "type": "function",
        "function": {
            "name": "plan_variations",
            "arguments": json.dumps(arguments) if as_string else arguments,
        },
    }


def _completion(*calls):
    return {"choices": [{"message": {"role": "assistant", "tool_calls": list(calls)}}]}


def _variation(*ops):
    return {"operations": list(ops)}


BRIGHT = {"op": "brightness", "params": {"value": 10}}
SEPIA = {"op": "filter", "params": {"type": "sepia"}}


def _run_planner(handler, api_key="sk-test", count=2, image=None, **client_kwargs):
    requests = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(recording)) as http:
            client = OpenRouterClient(http, api_key, **client_kwargs)
            planner = OpenRouterPlanner(client, "openai/gpt-4o-mini")
            return await planner.plan("make it moody", image, count)

    return asyncio.run(go()), requests


def test_no_key_is_unavailable_and_sends_nothing():
    result, requests = _run_planner(lambda r: httpx.Response(200, json={}), api_key=None)
    assert result.status is PlanStatus.UNAVAILABLE
    assert result.source == "none"
    assert result.plans == ()
    assert requests == []


def test_upstream_error_is_failed():
    result, requests = _run_planner(lambda r: httpx.Response(500, text="boom"))
    assert len(requests) == 1
    assert result.status is PlanStatus.FAILED
    assert result.source == "none"
    assert "500" in result.reason


def test_transport_error_is_failed():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result, _ = _run_planner(handler)
    assert result.status is PlanStatus.FAILED


def test_missing_tool_call_is_failed():
    body = {"choices": [{"message": {"role": "assistant", "content": "sure!"}}]}
    result, _ = _run_planner(lambda r: httpx.Response(200, json=body))
    assert result.status is PlanStatus.FAILED


def test_success_pads_plans_to_count():
    body = _completion(_tool_call([_variation(BRIGHT, SEPIA), _variation(SEPIA)]))
    result, _ = _run_planner(lambda r: httpx.Response(200, json=body), count=3)
    assert result.is_ok
    assert result.source == "openrouter"
    assert len(result.plans) == 3
    assert result.plans[2] == result.plans[0]
    assert [op.kind for op in result.plans[0]] == [OperationKind.BRIGHTNESS, OperationKind.FILTER]


def test_request_payload_and_headers():
    body = _completion(_tool_call([_variation(BRIGHT)]))
    image = make_image_bytes()
    _, requests = _run_planner(
        lambda r: httpx.Response(200, json=body),
        image=image,
        base_url="https://router.test/v1/",
        site_url="https://app.test",
        site_title="PixelPlan",
    )
    (request,) = requests
    assert str(request.url) == "https://router.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["HTTP-Referer"] == "https://app.test"
    assert request.headers["X-Title"] == "PixelPlan"

    payload = json.loads(request.content)
    assert payload["model"] == "openai/gpt-4o-mini"
    assert payload["tool_choice"] == "required"
    assert payload["parallel_tool_calls"] is True
    assert [m["role"] for m in payload["messages"]] == ["system", "user", "assistant"]
    user = payload["messages"][1]["content"]
    assert "propose 2" in user[0]["text"]
    assert user[-1]["image_url"]["url"].startswith("data:image/png;base64,")
    assert payload["tools"][0]["function"]["name"] == "plan_variations"


def test_parse_aggregates_parallel_calls():
    data = _completion(
        _tool_call([_variation(BRIGHT)]),
        _tool_call([_variation(SEPIA), _variation({"op": "blur", "params": {}})], as_string=False),
        {"type": "function", "function": {"name": "other_tool", "arguments": "{}"}},
    )
    plans = parse_tool_calls(data)
    # the variation made only of invalid steps is dropped
    assert len(plans) == 2
    assert plans[1][0].params == {"type": "sepia"}


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"choices": []},
        _completion(),
        _completion({"type": "function", "function": {"name": "plan_variations", "arguments": ""}}),
    ],
)
def test_parse_tool_call_missing(data):
    with pytest.raises(ToolCallMissing):
        parse_tool_calls(data)


@pytest.mark.parametrize("arguments", ["{not json", json.dumps({"plans": []}), json.dumps([1])])
def test_parse_arguments_unparsable(arguments):
    call = {"type": "function", "function": {"name": "plan_variations", "arguments": arguments}}
    with pytest.raises(ArgumentsUnparsable):
        parse_tool_calls(_completion(call))


def test_fit_to_count():
    assert fit_to_count([], 3) == []
    assert fit_to_count(FIXED_PLANS, 0) == []
    assert fit_to_count(FIXED_PLANS, 2) == list(FIXED_PLANS[:2])
    padded = fit_to_count(FIXED_PLANS[:2], 5)
    assert padded == [FIXED_PLANS[0], FIXED_PLANS[1], FIXED_PLANS[0], FIXED_PLANS[1], FIXED_PLANS[0]]


def test_fixed_plans_are_valid():
    assert len(FIXED_PLANS) == 10
    for plan in FIXED_PLANS:
        assert 1 <= len(plan) <= 6
        assert sum(op.kind.is_generative for op in plan) <= 1


def test_chain_falls_back_to_fixed_plans():
    async def go():
        transport = httpx.MockTransport(lambda r: httpx.Response(502, text="bad gateway"))
        async with httpx.AsyncClient(transport=transport) as http:
            ai = OpenRouterPlanner(OpenRouterClient(http, "sk-test"), "m")
            return await PlannerChain([ai, FixedPlanSource()]).plan("p", None, 4)

    result = asyncio.run(go())
    assert result.is_ok
    assert result.source == "fallback"
    assert list(result.plans) == list(FIXED_PLANS[:4])


def test_chain_returns_last_result_when_all_fail():
    result = asyncio.run(PlannerChain([FixedPlanSource()]).plan("p", None, 0))
    assert result.status is PlanStatus.FAILED
    assert result.plans == ()


def test_parse_skips_bad_call_next_to_good_one():
    bad = {"type": "function", "function": {"name": "plan_variations", "arguments": "{not json"}}
    empty = {"type": "function", "function": {"name": "plan_variations", "arguments": ""}}
    plans = parse_tool_calls(_completion(_tool_call([_variation(BRIGHT)]), bad, empty))
    assert len(plans) == 1
    assert plans[0][0].params == {"value": 10.0}


def test_planner_keeps_plans_when_one_parallel_call_is_malformed():
    bad = {"type": "function", "function": {"name": "plan_variations", "arguments": "{not json"}}
    body = _completion(bad, _tool_call([_variation(SEPIA)]))
    result, _ = _run_planner(lambda r: httpx.Response(200, json=body), count=2)
    assert result.is_ok
    assert result.source == "openrouter"
    assert len(result.plans) == 2
