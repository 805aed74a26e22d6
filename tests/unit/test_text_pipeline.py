import pytest

from civic.domain.reports.models import Category
from civic.domain.reports.text_pipeline import CATEGORY_RULES, categorize, normalize, process


@pytest.mark.parametrize(
	"raw,expected",
	[
		("Large pothole on Main Street", Category.ROAD),
		("Garbage piling up near my house", Category.SANITATION),
		("WATER everywhere after the storm", Category.WATER),
		("someone asked me for a BRIBE", Category.CORRUPTION),
		("completely unrelated text", None),
	],
)
def test_categorize(raw, expected):
	assert categorize(raw) == expected


def test_first_matching_rule_wins():
	# Matches both sanitation ("trash") and road ("street")
	assert categorize("trash dumped on the street") == Category.SANITATION
	# Matches both electricity ("power") and safety ("danger")
	assert categorize("power cable is a danger") == Category.ELECTRICITY


def test_rule_order_is_canonical():
	assert [rule.category for rule in CATEGORY_RULES] == [
		Category.SANITATION,
		Category.WATER,
		Category.ROAD,
		Category.ELECTRICITY,
		Category.CORRUPTION,
		Category.SAFETY,
	]


def test_normalize_capitalizes_each_word():
	assert normalize("  broken street light  ") == "Broken Street Light"


def test_normalize_leaves_rest_of_word_untouched():
	assert normalize("the mAIN road\tis iPhone-level bad") == "The MAIN Road\tIs IPhone-level Bad"


def test_normalize_is_idempotent():
	once = normalize("flooded   underpass near school")
	assert normalize(once) == once


def test_process_categorizes_raw_text():
	processed = process("  leaking pipe on 5th avenue ")
	assert processed.clean_text == "Leaking Pipe On 5th Avenue"
	assert processed.category == Category.WATER


def test_normalize_skips_leading_punctuation():
	assert normalize('pothole "near" (school) gate') == 'Pothole "Near" (School) Gate'


def test_normalize_leaves_words_starting_with_digits():
	assert normalize("2nd street -- 5th avenue") == "2nd Street -- 5th Avenue"
