from pathlib import Path

import pytest

from app.cms.errors import CmsXmlError, ErrorCode
from app.cms.modules.usergenerated.form_session import FormSession
from app.cms.modules.usergenerated.xml_content import XmlContent
from app.cms.sessions import RequestContext

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture()
def content():
    return XmlContent.from_string((FIXTURES / "tb_00001.xml").read_bytes())


@pytest.fixture()
def form_session():
    return FormSession(RequestContext(user_name="Guest", locale="en"))


def test_get_values(form_session, content):
    values = form_session.get_values(content, "en")
    assert values["Title[1]"] == "Full width example"


def test_get_values_defaults_to_context_locale(form_session, content):
    values = form_session.get_values(content)
    assert values["Paragraph[1]/Headline[1]"] == "A paragraph"
    assert values["Paragraph[2]/Headline[1]"] == "Another paragraph"
    assert values["Paragraph[1]/Text[1]/content[1]"].startswith("<p>This text block")


def test_missing_locale_is_empty(form_session, content):
    assert form_session.get_values(content, "de") == {}


def test_content_metadata(content):
    assert content.type_name == "TextBlocks"
    assert content.locales() == ["en"]
    assert content.has_locale("en")
    assert content.get_value("en", "Paragraph[2]/Headline") == "Another paragraph"
    assert content.get_value("en", "Paragraph[3]/Headline") is None


def test_set_values_creates_missing_nodes(form_session, content):
    form_session.set_values(
        content,
        "en",
        {
            "Paragraph[3]/Headline[1]": "Third",
            "Title[1]": "Changed",
            "Paragraph[3]/Text[1]/content[1]": "<p>new</p>",
        },
    )
    values = content.get_values("en")
    assert values["Title[1]"] == "Changed"
    assert values["Paragraph[3]/Headline[1]"] == "Third"
    assert values["Paragraph[3]/Text[1]/content[1]"] == "<p>new</p>"

    reparsed = XmlContent.from_string(content.to_string())
    assert reparsed.get_values("en") == values


def test_set_values_orders_numeric_indexes(form_session):
    content = XmlContent.from_string('<Items><Item language="en"/></Items>')
    values = {f"Entry[{i}]": str(i) for i in range(1, 12)}
    form_session.set_values(content, None, values)
    assert content.get_values("en") == values


def test_set_value_adds_locale():
    content = XmlContent.from_string('<TextBlocks><TextBlock language="en"><Title>x</Title></TextBlock></TextBlocks>')
    content.set_value("de", "Title[1]", "Beispiel")
    assert content.locales() == ["en", "de"]
    assert content.get_values("de") == {"Title[1]": "Beispiel"}


def test_set_value_rejects_gaps(content):
    with pytest.raises(CmsXmlError) as exc:
        content.set_value("en", "Paragraph[5]/Headline[1]", "x")
    assert exc.value.code == ErrorCode.XML_INVALID

    with pytest.raises(CmsXmlError) as exc:
        content.set_value("en", "Bad Name[1]", "x")
    assert exc.value.code == ErrorCode.XML_INVALID


def test_malformed_content():
    with pytest.raises(CmsXmlError) as exc:
        XmlContent.from_string("<TextBlocks><TextBlock>")
    assert exc.value.code == ErrorCode.XML_MALFORMED
