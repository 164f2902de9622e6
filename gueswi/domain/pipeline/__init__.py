"""Pipeline Domain - CRM kanban"""
