import logging

from BlockPress.xml_tree import XmlNode, markup_node, render_xml, text_node


def test_render_nested_with_indentation():
    sec = XmlNode(tag="sec", attributes={"id": "s1"})
    sec.append(text_node("title", "A & B"))
    sec.append(markup_node("p", "<bold>x</bold>"))
    assert render_xml([sec]) == (
        '<sec id="s1">\n'
        "  <title>A &amp; B</title>\n"
        "  <p><bold>x</bold></p>\n"
        "</sec>"
    )


def test_void_and_attribute_escaping():
    node = XmlNode(tag="graphic", attributes={"xlink:href": 'a"b&c.png'})
    assert render_xml([node]) == '<graphic xlink:href="a&quot;b&amp;c.png"/>'
    assert render_xml([text_node("p", "")]) == "<p></p>"


def test_content_with_children_prefers_children(caplog):
    node = XmlNode(tag="p", content="dropped", children=[text_node("bold", "kept")])
    with caplog.at_level(logging.WARNING):
        rendered = render_xml([node])
    assert "dropped" not in rendered
    assert "<bold>kept</bold>" in rendered
    assert "both content and children" in caplog.text


def test_find_all_is_depth_first():
    root = XmlNode(tag="body")
    first = root.append(XmlNode(tag="sec"))
    first.append(XmlNode(tag="sec"))
    root.append(XmlNode(tag="sec"))
    assert [len(node.children) for node in root.find_all("sec")] == [1, 0, 0]
