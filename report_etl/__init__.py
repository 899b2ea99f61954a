"""
Daily Report Package

Calendar-gated ETL job that copies CRM metrics into a Google Sheets report.

Modules:
- workdays: Working-day gate and holiday cache
- extract: Metrics fetch from the CRM
- transform: Payload to report grid mapping
- load: Google Sheets range update
- notify: Operator notifications
- scheduler: Daily trigger
- run_etl: Job orchestration and entry point
"""

__version__ = "1.0.0"
__author__ = "Data Engineering Team"
