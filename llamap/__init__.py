"""llamap — build an llms.txt digest of a website from its sitemap.

Pages move through scrape → parse → summarize stages recorded in a SQLite
store, and ``compose`` renders the summaries into one text file.
"""

__version__ = "0.3.0"
