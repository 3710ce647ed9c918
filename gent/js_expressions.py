"""JavaScript expressions injected into the browser page via CDP.

These handle the raw DOM walk behind snapshots and element lookup for
click/type. Kept in a separate module so the core stays clean.
"""

import json

# Tags whose subtrees never carry useful structure for selector finding.
FORBIDDEN_TAGS = (
    "SCRIPT",
    "STYLE",
    "LINK",
    "IMG",
    "PICTURE",
    "IFRAME",
    "BR",
    "HEAD",
    "META",
    "HTML",
    "NOSCRIPT",
    "SVG",
)


def raw_dom_js(root: str) -> str:
    """Generate JS that walks the DOM under `root` and returns a raw tree.

    Each element becomes {tag, id, cls, hidden, attrs?, children?}. Text
    children with non-whitespace content are kept as plain strings, in
    document order. Children of hidden or forbidden elements are not
    walked. Returns null if `root` matches nothing.
    """
    root_json = json.dumps(root)
    forbidden_json = json.dumps(list(FORBIDDEN_TAGS))
    return f"""
    (() => {{
      const FORBIDDEN = new Set({forbidden_json});

      function isHidden(el) {{
        if (!(el instanceof HTMLElement)) return false;
        if (el.getClientRects().length < 1) return true;
        const style = window.getComputedStyle(el);
        return style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0';
      }}

      function rawAttrs(el) {{
        if (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement) {{
          return {{
            placeholder: el.placeholder || '',
            type: el.type || '',
            name: el.name || '',
            value: el.value || '',
          }};
        }}
        if (el instanceof HTMLAnchorElement) return {{ href: el.getAttribute('href') }};
        if (el instanceof HTMLLabelElement) return {{ for: el.getAttribute('for') }};
        return null;
      }}

      function walk(el) {{
        const raw = {{
          tag: el.tagName.toUpperCase(),
          id: el.id || '',
          cls: [...el.classList],
          hidden: isHidden(el),
        }};
        const attrs = rawAttrs(el);
        if (attrs) raw.attrs = attrs;
        if (raw.hidden || FORBIDDEN.has(raw.tag)) return raw;

        raw.children = [];
        for (const child of el.childNodes) {{
          if (child instanceof Text) {{
            if (child.nodeValue.trim()) raw.children.push(child.nodeValue);
          }} else if (child instanceof HTMLElement) {{
            raw.children.push(walk(child));
          }}
        }}
        return raw;
      }}

      const root = document.querySelector({root_json});
      return root ? walk(root) : null;
    }})()
    """


def click_point_js(selector: str) -> str:
    """Generate JS that scrolls an element into view and returns its center.

    Returns {x, y} in viewport coordinates, or null if the element is
    missing or has no box yet.
    """
    sel_json = json.dumps(selector)
    return f"""
    (() => {{
      const el = document.querySelector({sel_json});
      if (!el) return null;
      el.scrollIntoView({{ block: 'center', inline: 'center', behavior: 'instant' }});
      const r = el.getBoundingClientRect();
      if (r.width === 0 && r.height === 0) return null;
      return {{ x: r.left + r.width / 2, y: r.top + r.height / 2 }};
    }})()
    """


def focus_js(selector: str) -> str:
    """Generate JS that focuses an element and moves the caret to its end."""
    sel_json = json.dumps(selector)
    return f"""
    (() => {{
      const el = document.querySelector({sel_json});
      if (!el) return false;
      el.scrollIntoView({{ block: 'center', behavior: 'instant' }});
      el.focus();
      if (typeof el.setSelectionRange === 'function' && typeof el.value === 'string') {{
        try {{ el.setSelectionRange(el.value.length, el.value.length); }} catch (e) {{}}
      }}
      return document.activeElement === el || el.contains(document.activeElement);
    }})()
    """
