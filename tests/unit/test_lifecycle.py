import itertools

import pytest

from civic.domain.reports import lifecycle
from civic.domain.reports.errors import Forbidden, ValidationError
from civic.domain.reports.models import Category, Report, ReportStatus, Role


def _report(status: ReportStatus) -> Report:
	return Report(
		id="r1",
		author_id="u1",
		raw_text="Garbage piling up near my house",
		clean_text="Garbage Piling Up Near My House",
		category=Category.SANITATION,
		status=status,
	)


@pytest.mark.parametrize("source,target", list(itertools.product(ReportStatus, repeat=2)))
@pytest.mark.parametrize("role", [Role.MODERATOR, Role.ADMIN])
def test_every_status_reachable_by_staff(source, target, role):
	step = lifecycle.transition(_report(source), target, role)
	assert step.report.status == target
	assert step.previous == source
	assert step.changed is (source != target)


def test_resolved_can_be_reopened():
	step = lifecycle.transition(_report(ReportStatus.RESOLVED), "pending", Role.MODERATOR)
	assert step.report.status == ReportStatus.PENDING
	assert step.label == "resolved_to_pending"


def test_same_status_is_noop():
	report = _report(ReportStatus.REVIEWED)
	step = lifecycle.transition(report, ReportStatus.REVIEWED, Role.ADMIN)
	assert step.report is report
	assert step.label == "noop"


def test_transition_does_not_mutate_input():
	report = _report(ReportStatus.PENDING)
	lifecycle.transition(report, ReportStatus.RESOLVED, Role.MODERATOR)
	assert report.status == ReportStatus.PENDING


@pytest.mark.parametrize("role", [Role.CITIZEN, None])
def test_non_staff_cannot_transition(role):
	with pytest.raises(Forbidden):
		lifecycle.transition(_report(ReportStatus.PENDING), ReportStatus.REVIEWED, role)


def test_unknown_status_rejected():
	with pytest.raises(ValidationError):
		lifecycle.transition(_report(ReportStatus.PENDING), "archived", Role.MODERATOR)
