from processors.xml_parser import parse_xml


def test_nested_elements_attributes_and_text():
    root = parse_xml(
        '<?xml version="1.0"?>\n'
        '<!-- exported -->\n'
        '<root version="1.4.1"><a id="x" name=\'single\'>hello</a><b/><a>2</a></root>'
    )
    assert root.tag == "root"
    assert root.get("version") == "1.4.1"
    assert [c.tag for c in root.children] == ["a", "b", "a"]
    first = root.find("a")
    assert first.attributes == {"id": "x", "name": "single"}
    assert first.text == "hello"
    assert len(root.findall("a")) == 2
    assert root.find("missing") is None


def test_self_closing_element_has_no_children():
    root = parse_xml('<input semantic="VERTEX" offset="0"/>')
    assert root.tag == "input"
    assert root.children == []
    assert root.get("offset") == "0"


def test_text_is_trimmed_and_unescaped():
    root = parse_xml("<p>\n   1 2 3 &amp; 4\n  </p>")
    assert root.text == "1 2 3 & 4"


def test_cdata_is_kept_verbatim():
    root = parse_xml("<s><![CDATA[<not> & markup]]></s>")
    assert root.text == "<not> & markup"


def test_iter_walks_all_descendants():
    root = parse_xml("<a><g id='1'><mesh/></g><lib><g id='2'/></lib></a>")
    assert [g.get("id") for g in root.iter("g")] == ["1", "2"]
    assert [e.tag for e in root.iter()] == ["g", "mesh", "lib", "g"]


def test_namespaced_root_and_doctype_are_tolerated():
    root = parse_xml('<!DOCTYPE x>\n<COLLADA xmlns="http://www.collada.org/2005/11/COLLADASchema">'
                     '<asset/></COLLADA>')
    assert root.tag == "COLLADA"
    assert root.find("asset") is not None


def test_unclosed_markup_is_recovered():
    root = parse_xml("<a><b>text")
    assert root.tag == "a"
    assert root.find("b").text == "text"


def test_empty_document():
    assert parse_xml("") is None
    assert parse_xml("just text") is None
