"""
Convert a transform docstring to html for display in the editor.

Inline math can use the *math* role, or latex style *\\$expression\\$*.
"""
import re
from docutils.core import publish_parts


def rst2html(rst, part='html_body', math_output="html"):
    """
    Convert restructured text into simple html.

    Valid output formats for formulas include html, mathml and mathjax.

    The useful parts are:

        whole: the entire html document

        html_body: document division with title and contents and footer

        body: contents only
    """
    rst = replace_dollar(rst)
    overrides = {
        "math_input": "latex",
        "math_output": math_output,
        "report_level": 5,  # docstring markup problems are not fatal
    }
    parts = publish_parts(source=rst, writer_name='html',
                          settings_overrides=overrides)
    return parts[part]


_dollar = re.compile(r"(?:^|(?<=\s|[(]))[$]([^\n]*?)(?<![\\])[$](?:$|(?=\s|[.,;)\\]))")
_notdollar = re.compile(r"\\[$]")
def replace_dollar(content):
    """
    Convert dollar signs to inline math markup in rst.
    """
    content = _dollar.sub(r":math:`\1`", content)
    content = _notdollar.sub("$", content)
    return content
