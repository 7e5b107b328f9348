"""
Strategy Report HTML

Standalone HTML page rendered from an SEO strategy report: H1, meta
description, one H2 per planned section and the long-tail keyword tags.
"""

import html
from typing import Any, Dict

STYLES = """
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
            line-height: 1.6;
            color: #333;
            background: #f9fafb;
        }
        .container {
            max-width: 900px;
            margin: 0 auto;
            padding: 40px 20px;
            background: white;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
        }
        h1 { font-size: 2.5rem; margin-bottom: 20px; color: #1a202c; line-height: 1.2; }
        .meta-description {
            font-size: 1.1rem;
            color: #4a5568;
            margin-bottom: 30px;
            padding-bottom: 30px;
            border-bottom: 2px solid #e2e8f0;
        }
        h2 { font-size: 1.8rem; margin-top: 40px; margin-bottom: 15px; color: #2d3748; }
        p { margin-bottom: 20px; color: #4a5568; font-size: 1.05rem; }
        .long-tail-keywords { background: #edf2f7; padding: 20px; border-radius: 8px; margin: 30px 0; }
        .long-tail-keywords h3 { font-size: 1.2rem; margin-bottom: 15px; color: #2d3748; }
        .keyword-tag {
            display: inline-block;
            background: #4299e1;
            color: white;
            padding: 6px 12px;
            margin: 5px;
            border-radius: 4px;
            font-size: 0.9rem;
        }
        footer {
            margin-top: 50px;
            padding-top: 20px;
            border-top: 1px solid #e2e8f0;
            text-align: center;
            color: #a0aec0;
            font-size: 0.9rem;
        }
"""

LABELS = {
    "en": {"related": "Related Keywords", "footer": "AI-Generated SEO Optimized Content", "words": "Recommended Word Count"},
    "zh": {"related": "相关关键词", "footer": "基于 AI 生成的 SEO 优化内容", "words": "推荐字数"},
}


def _e(value: Any) -> str:
    return html.escape(str(value)) if value is not None else ""


def render_strategy_html(report: Dict[str, Any], ui_language: str = "en") -> str:
    """Render the strategy report as a complete HTML document."""
    labels = LABELS.get(ui_language, LABELS["en"])

    sections = "\n".join(
        f"        <h2>{_e(s.get('header'))}</h2>\n        <p>{_e(s.get('description'))}</p>"
        for s in report.get("contentStructure") or []
    )

    keywords_html = ""
    long_tail = report.get("longTailKeywords") or []
    if long_tail:
        tags = "".join(f'<span class="keyword-tag">{_e(kw)}</span>' for kw in long_tail)
        keywords_html = f"""
        <div class="long-tail-keywords">
            <h3>{labels['related']}</h3>
            <div>{tags}</div>
        </div>"""

    return f"""<!DOCTYPE html>
<html lang="{'zh-CN' if ui_language == 'zh' else 'en'}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="description" content="{_e(report.get('metaDescription'))}">
    <title>{_e(report.get('pageTitleH1'))}</title>
    <style>{STYLES}    </style>
</head>
<body>
    <div class="container">
        <h1>{_e(report.get('pageTitleH1'))}</h1>
        <div class="meta-description">{_e(report.get('metaDescription'))}</div>
{sections}
{keywords_html}
        <footer>
            <p>{labels['footer']}</p>
            <p>{labels['words']}: {_e(report.get('recommendedWordCount') or 'N/A')}</p>
        </footer>
    </div>
</body>
</html>"""
