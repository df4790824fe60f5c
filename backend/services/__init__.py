"""
Services package for the QuerySight query service
Contains completion, text-to-SQL, database, shaping and charting services
"""

__all__ = [
    'color_interpolator',
    'prompt_templates',
    'query_result',
    'llm_service',
    'text_to_sql_service',
    'database',
    'result_shaper',
    'chart_data_builder',
    'query_orchestrator',
    'query_session',
]
