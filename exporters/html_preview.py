"""Marketo merge-token substitution and preview wrapping for exported HTML."""

import re

VIEWPORT_META = '<meta name="viewport" content="width=device-width, initial-scale=1.0">'

_VIEW_AS_WEBPAGE = re.compile(r'\{\{system\.viewAsWebpageLink\}\}')
_UNSUBSCRIBE = re.compile(r'\{\{system\.unsubscribeLink\}\}')
_LEAD_TOKEN = re.compile(r'\{\{lead\.([^}]+)\}\}')
_MY_TOKEN = re.compile(r'\{\{my\.([^}]+)\}\}')
_COMPANY_TOKEN = re.compile(r'\{\{company\.([^}]+)\}\}')
_EACH_LOOP = re.compile(r'\{\{#each ([^}]+)\}\}(.*?)\{\{/each\}\}', re.DOTALL)

PREVIEW_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
{viewport}
<title>Email Preview</title>
</head>
<body>
{body}
</body>
</html>"""

DISPLAY_TEMPLATE = """<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN" "http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">
<html xmlns="http://www.w3.org/1999/xhtml">
<head>
  <meta http-equiv="Content-Type" content="text/html; charset=utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>Email Template</title>
  <style>
    body {{ margin: 0; padding: 0; width: 100% !important; }}
    img {{ border: 0; height: auto; line-height: 100%; outline: none; text-decoration: none; -ms-interpolation-mode: bicubic; }}
    table {{ border-collapse: collapse; }}
  </style>
</head>
<body>
{body}
</body>
</html>"""


def substitute_placeholders(html: str) -> str:
    """
    Replace Marketo merge tokens with readable markers.

    ``{{lead.FirstName}}`` becomes ``[Lead: FirstName]``, ``{{my.Offer}}``
    becomes ``[Token: Offer]``, system links become local anchors and
    ``{{#each}}`` blocks collapse to ``[Each Loop Content]``.
    """
    result = _VIEW_AS_WEBPAGE.sub('#viewAsWebpage', html)
    result = _UNSUBSCRIBE.sub('#unsubscribe', result)
    result = _LEAD_TOKEN.sub(lambda m: f'[Lead: {m.group(1)}]', result)
    result = _MY_TOKEN.sub(lambda m: f'[Token: {m.group(1)}]', result)
    result = _COMPANY_TOKEN.sub(lambda m: f'[Company: {m.group(1)}]', result)
    result = _EACH_LOOP.sub('[Each Loop Content]', result)
    return result


def prepare_preview(html: str) -> str:
    """
    Make exported HTML viewable on its own in a browser.

    Fragments without a DOCTYPE are wrapped in a minimal HTML5 document;
    complete documents only get a viewport meta tag when they lack one.
    """
    processed = substitute_placeholders(html)

    if '<!DOCTYPE' not in processed:
        return PREVIEW_TEMPLATE.format(viewport=VIEWPORT_META, body=processed)

    if 'viewport' not in processed:
        processed = processed.replace('<head>', f'<head>\n{VIEWPORT_META}', 1)

    return processed


def wrap_for_display(html: str) -> str:
    """Substitute sample values and wrap in an XHTML shell for the web viewer."""
    processed = _VIEW_AS_WEBPAGE.sub('#', html)
    processed = _UNSUBSCRIBE.sub('#', processed)
    processed = _LEAD_TOKEN.sub('Sample Value', processed)
    processed = _MY_TOKEN.sub('Sample Value', processed)
    return DISPLAY_TEMPLATE.format(body=processed)


__all__ = ['substitute_placeholders', 'prepare_preview', 'wrap_for_display']
