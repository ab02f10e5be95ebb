from studyforge.utils.model_json import Malformed, Parsed, parse_model_json, strip_code_fences


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("```\n<h1>x</h1>\n```") == "<h1>x</h1>"
    assert strip_code_fences("  plain  ") == "plain"


def test_strict_parse():
    assert parse_model_json('{"title": "Quiz"}') == Parsed({"title": "Quiz"})


def test_fenced_json():
    result = parse_model_json('```json\n{"questions": []}\n```')
    assert isinstance(result, Parsed)
    assert result.value == {"questions": []}


def test_object_wrapped_in_prose():
    raw = 'Sure! Here is your quiz:\n{"title": "T", "questions": [{"a": {"b": 1}}]}\nGood luck.'
    result = parse_model_json(raw)
    assert isinstance(result, Parsed)
    assert result.value["questions"][0]["a"] == {"b": 1}


def test_unrecoverable_text_is_malformed():
    result = parse_model_json("I cannot help with that.")
    assert isinstance(result, Malformed)
    assert result.raw == "I cannot help with that."


def test_broken_braces_are_malformed():
    assert isinstance(parse_model_json('{"title": "T", "questions": [}'), Malformed)


def test_empty_response_is_malformed():
    assert isinstance(parse_model_json(""), Malformed)
    assert isinstance(parse_model_json("```json\n```"), Malformed)
