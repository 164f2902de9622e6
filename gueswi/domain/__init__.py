"""Domain packages, each split into schemas, repository, service and router"""
