import pytest

from civic.domain.reports.models import Category, Report
from civic.domain.reports.notifications import RedisStreamNotifier
from civic.infra.redis import redis_client


@pytest.mark.asyncio
async def test_report_submitted_appends_stream_entry(fake_redis):
	notifier = RedisStreamNotifier(redis_client, "test:reports", maxlen=100)
	report = Report(
		id="r-42",
		author_id="u-1",
		raw_text="completely unrelated text",
		clean_text="Completely Unrelated Text",
		category=None,
	)
	await notifier.report_submitted(report)
	await notifier.report_submitted(
		Report(id="r-43", author_id="u-1", raw_text="pothole", clean_text="Pothole", category=Category.ROAD)
	)

	entries = await fake_redis.xrange("test:reports")
	assert [fields["report_id"] for _, fields in entries] == ["r-42", "r-43"]
	first = entries[0][1]
	assert first["event"] == "report.submitted"
	assert first["category"] == "uncategorized"
	assert first["status"] == "pending"
