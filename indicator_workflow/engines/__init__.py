"""
Workflow engines: indicators, submission intake, verification and tasks.
"""
