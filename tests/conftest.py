import pytest

from domquery.config import Settings
from domquery.query import DocumentQuery

BOOKS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<library>
    <book id="1"><title>Dune</title><author>Herbert</author></book>
    <book id="2"><title>Emma</title><author>Austen</author></book>
    <book id="3"><title>Ulysses</title><author>Joyce</author></book>
</library>"""

ITEMS_XML = """<root>
    <item>Item One</item>
    <item>Item Two</item>
    <item test="omg">Item Three</item>
    <parent>
        <child>omg</child>
        <child><test/></child>
        <child test="hai">omg</child>
    </parent>
    <copy><default/></copy>
</root>"""


@pytest.fixture
def settings():
    return Settings(pretty_print=False, xml_declaration=False)


@pytest.fixture
def dq(settings):
    return DocumentQuery(settings=settings)


@pytest.fixture
def books_xml():
    return BOOKS_XML


@pytest.fixture
def items_xml():
    return ITEMS_XML


@pytest.fixture
def books(dq, books_xml):
    return dq.load(books_xml)
