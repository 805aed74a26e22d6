import asyncio

import httpx
import pytest

from civic.domain.reports.enhancer import (
	EnhancerUnavailable,
	HttpTextEnhancer,
	TwoTierCategorizer,
	parse_enhancement,
)
from civic.domain.reports.models import Category
from civic.domain.reports.text_pipeline import ProcessedText

ENHANCER_URL = "http://enhancer.test/v1/enhance"


def _client(handler) -> httpx.AsyncClient:
	return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_enhancer_answer_is_used():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(200, json={"clean_text": "Overflowing Bins On 3rd Street", "category": "Sanitation"})

	async with _client(handler) as client:
		categorizer = TwoTierCategorizer(HttpTextEnhancer(ENHANCER_URL, client=client))
		result = await categorizer.process("bins overflowing on 3rd street")
	assert result == ProcessedText(clean_text="Overflowing Bins On 3rd Street", category=Category.SANITATION)


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_fall_back():
	calls = []

	def handler(request: httpx.Request) -> httpx.Response:
		calls.append(request)
		return httpx.Response(503)

	async with _client(handler) as client:
		categorizer = TwoTierCategorizer(HttpTextEnhancer(ENHANCER_URL, max_attempts=3, client=client))
		result = await categorizer.process("Large pothole on Main Street")
	assert len(calls) == 3
	assert result.category == Category.ROAD
	assert result.clean_text == "Large Pothole On Main Street"


@pytest.mark.asyncio
async def test_transport_error_then_success():
	attempts = {"count": 0}

	def handler(request: httpx.Request) -> httpx.Response:
		attempts["count"] += 1
		if attempts["count"] == 1:
			raise httpx.ConnectError("refused", request=request)
		return httpx.Response(200, json={"clean_text": "Dark Alley", "category": "safety"})

	async with _client(handler) as client:
		result = await HttpTextEnhancer(ENHANCER_URL, max_attempts=2, client=client).enhance("dark alley")
	assert result.category == Category.SAFETY


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
	calls = []

	def handler(request: httpx.Request) -> httpx.Response:
		calls.append(request)
		return httpx.Response(422, json={"detail": "bad"})

	async with _client(handler) as client:
		with pytest.raises(EnhancerUnavailable):
			await HttpTextEnhancer(ENHANCER_URL, max_attempts=3, client=client).enhance("anything at all")
	assert len(calls) == 1


@pytest.mark.asyncio
async def test_unknown_category_falls_back_to_rules():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(200, json={"clean_text": "Leaky Pipe", "category": "plumbing"})

	async with _client(handler) as client:
		categorizer = TwoTierCategorizer(HttpTextEnhancer(ENHANCER_URL, client=client))
		result = await categorizer.process("leaky pipe in the basement")
	assert result.category == Category.WATER
	assert result.clean_text == "Leaky Pipe In The Basement"


@pytest.mark.asyncio
async def test_slow_enhancer_hits_deadline():
	class _Slow:
		async def enhance(self, raw_text):
			await asyncio.sleep(5)
			return ProcessedText(clean_text="never", category=None)

	result = await TwoTierCategorizer(_Slow(), deadline_seconds=0.01).process("Garbage piling up near my house")
	assert result.category == Category.SANITATION


@pytest.mark.asyncio
async def test_without_enhancer_rule_engine_is_used():
	result = await TwoTierCategorizer().process("completely unrelated text")
	assert result.category is None


@pytest.mark.parametrize(
	"payload",
	[[], {"category": "road"}, {"clean_text": "   ", "category": "road"}],
)
def test_parse_enhancement_rejects_malformed_payloads(payload):
	with pytest.raises(EnhancerUnavailable):
		parse_enhancement(payload)


def test_parse_enhancement_allows_missing_category():
	assert parse_enhancement({"clean_text": " Fine "}) == ProcessedText(clean_text="Fine", category=None)
