"""Application package for the SkillHub learning platform backend.

This package exposes the service, repository and model modules used by
the FastAPI application: courses, projects, job and internship
opportunities, and the users that enroll in, build and apply to them.
Individual modules contain the concrete implementations and
documentation.
"""
