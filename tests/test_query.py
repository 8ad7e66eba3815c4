"""
Tests for loading, querying and serializing with DocumentQuery.
"""

import pytest
from lxml import etree

from domquery.config import Settings
from domquery.cursor import ResultCursor
from domquery.errors import DomQueryError, LoadError, QueryError, UnknownMemberError
from domquery.query import DocumentQuery


def _canonical(xml_string):
    parser = etree.XMLParser(remove_blank_text=True)
    return etree.tostring(etree.fromstring(xml_string.encode('utf-8'), parser), method='c14n')


def test_load_returns_self(dq, books_xml):
    assert dq.load(books_xml) is dq
    assert dq.root.tag == 'library'
    assert dq.count() == 0


def test_load_accepts_bytes(dq):
    dq.load(b'<root><a/></root>')
    assert dq.root.tag == 'root'


@pytest.mark.parametrize('source', ['', '   ', '<root>', '<a></b>', 'not xml'])
def test_load_rejects_malformed_source(dq, source):
    with pytest.raises(LoadError):
        dq.load(source)


def test_load_rejects_non_string(dq):
    with pytest.raises(LoadError):
        dq.load(None)


def test_load_error_is_domquery_error(dq):
    with pytest.raises(DomQueryError):
        dq.load('<broken')


def test_load_with_expression_sets_active_cursor(dq, books_xml):
    assert dq.load(books_xml, '//book') is dq
    assert dq.count() == 3


def test_load_with_expression_can_return_cursor(dq, books_xml):
    cursor = dq.load(books_xml, '//book', return_cursor=True)
    assert isinstance(cursor, ResultCursor)
    assert cursor.count() == 3
    assert cursor is dq.results


def test_reload_replaces_document(books):
    books.path('//book')
    books.load('<other/>')
    assert books.root.tag == 'other'
    assert books.count() == 0


def test_path_sets_active_cursor(books):
    assert books.path('//title') is books
    assert books.count() == 3
    assert [node.text for node in books] == ['Dune', 'Emma', 'Ulysses']


def test_path_return_cursor_leaves_state(books):
    books.path('//book')
    cursor = books.path('//title', return_cursor=True)
    assert cursor.count() == 3
    assert books.count() == 3
    assert books.results.first().tag == 'book'


def test_path_with_context(books):
    second = books.path("//book[@id='2']", return_cursor=True).first()
    books.path('title', context=second)
    assert books.count() == 1
    assert books.results.first().text == 'Emma'


@pytest.mark.parametrize('expression', ['//book/@id', '//title/text()'])
def test_path_rejects_string_result_as_context(books, expression):
    context = books.path(expression, return_cursor=True)[0]
    with pytest.raises(QueryError):
        books.path('.', context=context)


def test_path_selects_attributes_and_text(books):
    assert books.path('//book/@id').results.nodes() == ['1', '2', '3']
    assert books.path('//author/text()').results.nodes() == ['Herbert', 'Austen', 'Joyce']


def test_path_before_load_fails(dq):
    with pytest.raises(LoadError):
        dq.path('//a')


def test_invalid_expression_raises_query_error(books):
    with pytest.raises(QueryError):
        books.path('//book[')


def test_scalar_expression_raises_query_error(books):
    with pytest.raises(QueryError):
        books.path('count(//book)')


def test_count_with_explicit_cursor(books):
    books.path('//book')
    titles = books.path('//title[1]', return_cursor=True)
    assert books.count(titles) == 3
    assert books.count(ResultCursor()) == 0


def test_requery_is_idempotent(books):
    first = books.path('//book', return_cursor=True)
    second = books.path('//book', return_cursor=True)
    assert first.count() == second.count()
    assert first.nodes() == second.nodes()


def test_snapshot_survives_removal(books):
    cursor = books.path('//book', return_cursor=True)
    books.path("//book[@id='2']").remove()

    assert cursor.count() == 3
    removed = cursor.item(1)
    assert removed.get('id') == '2'
    assert removed.getparent() is None
    assert books.path('//book', return_cursor=True).count() == 2


def test_len_and_iter_follow_active_cursor(books):
    books.path('//author')
    assert len(books) == 3
    assert [node.tag for node in books] == ['author'] * 3


def test_unknown_member_raises(books):
    with pytest.raises(UnknownMemberError):
        books.frobnicate()

    with pytest.raises(AttributeError):
        books.no_such_property


def test_load_file(dq, tmp_path, books_xml):
    xml_file = tmp_path / 'books.xml'
    xml_file.write_text(books_xml, encoding='utf-8')

    cursor = dq.load_file(str(xml_file), '//book', return_cursor=True)
    assert cursor.count() == 3


def test_load_file_missing(dq, tmp_path):
    with pytest.raises(LoadError):
        dq.load_file(str(tmp_path / 'missing.xml'))


def test_load_data(dq):
    dq.load_data({'book': [{'title': 'Dune'}, {'title': 'Emma'}]}, root_name='library')
    assert dq.path('//book').count() == 2
    assert dq.get_attr('total') == ['2', '2']
    assert dq.path('//book[@index="1"]/title').results.first().text == 'Emma'


def test_round_trip_string(books, books_xml):
    assert _canonical(books.to_string()) == _canonical(books_xml)


def test_round_trip_with_pretty_print_and_declaration(books_xml):
    dq = DocumentQuery(settings=Settings(pretty_print=True, xml_declaration=True))
    output = dq.load(books_xml).to_string()

    assert output.startswith('<?xml version="1.0" encoding="utf-8"?>')
    assert _canonical(output.split('\n', 1)[1]) == _canonical(books_xml)


def test_save_document_mode(books):
    tree = books.save('document')
    assert tree is books.document
    assert tree.getroot().tag == 'library'


def test_save_document_mode_materializes_results(books):
    tree = books.path('//title').save('document', results=True)
    root = tree.getroot()
    assert root.tag == 'results'
    assert [child.text for child in root] == ['Dune', 'Emma', 'Ulysses']
    # Copies, not the live nodes
    assert root[0] is not books.results.first()


def test_save_string_results(books):
    output = books.path('//title').save('string', results=True)
    assert output == '<title>Dune</title>\n<title>Emma</title>\n<title>Ulysses</title>'


def test_save_string_results_with_attributes(books):
    assert books.path('//book/@id').save('string', results=True) == '1\n2\n3'


def test_save_mapping_document(books):
    mappings = books.save('mapping')
    assert len(mappings) == 1
    library = mappings[0]['library']
    assert library['book'][1]['@id'] == '2'
    assert library['book'][1]['title'] == 'Emma'


def test_save_mapping_results(books):
    mappings = books.path('//book').save('mapping', results=True)
    assert [m['book']['author'] for m in mappings] == ['Herbert', 'Austen', 'Joyce']


def test_save_mapping_results_keeps_string_results(books):
    mappings = books.path("//book[1] | //book[1]/@id | //book[2]/title/text()").save('mapping', results=True)
    assert len(mappings) == 3
    assert mappings[0]['book']['title'] == 'Dune'
    assert mappings[1:] == ['1', 'Emma']


def test_save_unknown_mode(books):
    with pytest.raises(ValueError):
        books.save('yaml')


def test_str_and_repr(dq):
    assert str(dq) == ''
    assert repr(dq) == 'DocumentQuery(no document loaded)'

    dq.load('<root><a/></root>').path('//a')
    assert str(dq) == '<root><a/></root>'
    assert repr(dq) == 'DocumentQuery(root=<root>, results=1)'
