import json

from langchain_core.messages import AIMessage

from smartroute.utils.formatter import (
    EventsResult,
    MailResult,
    OpaqueResult,
    TextResult,
    ToolObservation,
    classify_observation,
    extract_content_from_tool_observations,
    extract_text_content,
)


def test_strings_pass_through_unchanged():
    assert extract_text_content("  hello  ") == "  hello  "


def test_message_content_extracted():
    assert extract_text_content(AIMessage(content="from the model")) == "from the model"


def test_primary_fields_in_priority_order():
    assert extract_text_content({"text": "t", "content": "c"}) == "c"
    assert extract_text_content({"output": "o", "response": "r"}) == "o"


def test_sequence_of_content_items_joined():
    items = [{"type": "text", "text": "one"}, {"content": "two"}, {"other": 1}, "three"]
    assert extract_text_content(items) == "one\ntwo\nthree"


def test_nested_text_recovered_and_unescaped():
    assert extract_text_content({"result": {"text": 'say "hi"\nbye'}}) == 'say "hi"\nbye'


def test_unrecognised_mapping_serialized():
    assert json.loads(extract_text_content({"a": 1})) == {"a": 1}


def test_opaque_values_never_raise():
    class Weird:
        def __str__(self):
            return "weird"

    assert extract_text_content(Weird()) == "weird"


def test_classify_mail_and_events():
    assert isinstance(classify_observation({"messages": []}), MailResult)
    assert isinstance(classify_observation(json.dumps({"events": [{"summary": "x"}]})), EventsResult)
    assert isinstance(classify_observation("plain words"), TextResult)
    assert isinstance(classify_observation({"unrelated": True}), OpaqueResult)


def test_observations_rendered_as_mail_and_events():
    observations = [
        ToolObservation(
            tool="search_gmail_messages",
            output={"messages": [{"subject": "Invoice", "sender": "billing@example.com", "date": "Mon", "snippet": "Due soon"}]},
        ),
        ToolObservation(tool="noop", output=""),
        ToolObservation(
            tool="get_events",
            output=json.dumps({"events": [{"summary": "Standup", "start": {"dateTime": "2025-10-06T09:00:00Z"}}]}),
        ),
    ]
    text = extract_content_from_tool_observations(observations)
    assert text == (
        "Subject: Invoice\nFrom: billing@example.com\nDate: Mon\nPreview: Due soon"
        "\n\n"
        "Event: Standup\nTime: 2025-10-06T09:00:00Z"
    )


def test_observation_missing_fields_use_placeholders():
    text = extract_content_from_tool_observations([{"tool": "get_events", "output": {"events": [{}]}}])
    assert text == "Event: No title\nTime: Unknown time"


def test_no_usable_observations():
    assert extract_content_from_tool_observations([]) == ""
    assert extract_content_from_tool_observations([ToolObservation(tool="t", output=None)]) == ""
