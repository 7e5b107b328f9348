"""
Niche Mining Engine

Keyword research and SEO content generation backend:
1. Mines keywords with Gemini in rounds and scores ranking probability
2. Enriches keywords with SE-Ranking volume and difficulty
3. Runs deep dive strategy reports and visual article generation
4. Serves cached DataForSEO domain data to the website dashboard
"""

__version__ = "1.0.0"
