"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the SkillHub backend.
Controllers are intentionally thin: they resolve the caller, delegate
to a service constructed around the request's document store, and
return JSON. Service errors are rendered by the exception handlers
registered below as `{"message": ...}` with their status code.

Endpoints implemented:
- /users: register, login, profile, admin user management
- /courses: catalogue, enroll, rate, my courses
- /projects: catalogue, like, comment, my projects
- /opportunities: postings, apply, application status, my applications
- GET /health
"""

import json
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import errors, models, services
from .auth import get_current_user, require_admin
from .config import settings
from .database import create_db_and_tables, get_store
from .queries import parse_bool
from .store import DocumentStore

app = FastAPI(title="SkillHub API")
logger = logging.getLogger("skillhub.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(errors.ServiceError)
async def service_error_handler(request: Request, exc: errors.ServiceError):
    if exc.status_code >= 500:
        logger.error("service_error %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={'message': exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{where}: {err.get('msg')}")
    return JSONResponse(status_code=400, content={'message': "; ".join(problems) or 'invalid request'})


# ---------- Users ----------

@app.post('/users', status_code=201)
def register(payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store)):
    """Register a student account and return it with an access token."""
    return services.AuthService(store).register(payload)


@app.post('/users/login')
def login(payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store)):
    """Authenticate by email and password and return a signed JWT token.

    The token carries `user_id` and `role` and expires after
    `JWT_EXPIRE_HOURS`.
    """
    return services.AuthService(store).authenticate(payload)


@app.get('/users/profile')
def get_profile(store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    return services.UserService(store).profile(user.id)


@app.put('/users/profile')
def update_profile(payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                   user: models.User = Depends(get_current_user)):
    return services.UserService(store).update_profile(user.id, payload)


@app.get('/users')
def list_users(store: DocumentStore = Depends(get_store), admin: models.User = Depends(require_admin)):
    return services.UserService(store).list_users()


@app.delete('/users/{user_id}')
def delete_user(user_id: str, store: DocumentStore = Depends(get_store), admin: models.User = Depends(require_admin)):
    services.UserService(store).delete_user(user_id)
    return {'message': 'User removed'}


@app.put('/users/{user_id}/role')
def set_user_role(user_id: str, payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                  admin: models.User = Depends(require_admin)):
    """Promote or demote a user (`student` or `admin`)."""
    return services.UserService(store).set_role(user_id, payload.get('role'))


# ---------- Courses ----------

@app.get('/courses')
def list_courses(difficulty: Optional[str] = None, search: Optional[str] = None,
                 store: DocumentStore = Depends(get_store)):
    """List courses, newest first, optionally filtered by difficulty and text."""
    return services.CourseService(store).list(difficulty=difficulty, search=search)


@app.get('/courses/my/courses')
def my_courses(store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    """Courses the caller is enrolled in, in enrollment order."""
    return services.CourseService(store).my_courses(user.id)


@app.get('/courses/{course_id}')
def get_course(course_id: str, store: DocumentStore = Depends(get_store)):
    return services.CourseService(store).get(course_id)


@app.post('/courses', status_code=201)
def create_course(payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                  admin: models.User = Depends(require_admin)):
    return services.CourseService(store).create(payload, admin.id)


@app.put('/courses/{course_id}')
def update_course(course_id: str, payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                  admin: models.User = Depends(require_admin)):
    return services.CourseService(store).update(course_id, payload)


@app.delete('/courses/{course_id}')
def delete_course(course_id: str, store: DocumentStore = Depends(get_store), admin: models.User = Depends(require_admin)):
    services.CourseService(store).delete(course_id)
    return {'message': 'Course removed'}


@app.post('/courses/{course_id}/enroll')
def enroll_course(course_id: str, store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    services.CourseService(store).enroll(course_id, user.id)
    return {'message': 'Successfully enrolled in course'}


@app.post('/courses/{course_id}/rate')
def rate_course(course_id: str, payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                user: models.User = Depends(get_current_user)):
    """Rate a course the caller is enrolled in; re-rating overwrites."""
    services.CourseService(store).rate(course_id, user.id, payload.get('rating'), payload.get('review'))
    return {'message': 'Course rated successfully'}


# ---------- Projects ----------

@app.get('/projects')
def list_projects(difficulty: Optional[str] = None, status: Optional[str] = None, search: Optional[str] = None,
                  store: DocumentStore = Depends(get_store)):
    return services.ProjectService(store).list(difficulty=difficulty, status=status, search=search)


@app.get('/projects/my/projects')
def my_projects(store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    """Projects the caller created or collaborates on."""
    return services.ProjectService(store).my_projects(user.id)


@app.get('/projects/{project_id}')
def get_project(project_id: str, store: DocumentStore = Depends(get_store)):
    return services.ProjectService(store).get(project_id)


@app.post('/projects', status_code=201)
def create_project(payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                   user: models.User = Depends(get_current_user)):
    return services.ProjectService(store).create(payload, user.id)


@app.put('/projects/{project_id}')
def update_project(project_id: str, payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                   user: models.User = Depends(get_current_user)):
    return services.ProjectService(store).update(project_id, payload, user.id)


@app.delete('/projects/{project_id}')
def delete_project(project_id: str, store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    services.ProjectService(store).delete(project_id, user.id)
    return {'message': 'Project removed'}


@app.post('/projects/{project_id}/like')
def like_project(project_id: str, store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    """Toggle the caller's like and return the resulting like list."""
    return {'likes': services.ProjectService(store).toggle_like(project_id, user.id)}


@app.post('/projects/{project_id}/comment')
def comment_project(project_id: str, payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                    user: models.User = Depends(get_current_user)):
    return services.ProjectService(store).comment(project_id, user.id, payload.get('text'))


# ---------- Opportunities ----------

@app.get('/opportunities')
def list_opportunities(type: Optional[str] = None, location: Optional[str] = None, isRemote: Optional[str] = None,
                       search: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    """List active opportunities, newest first.

    `isRemote` is read as a flag: `true`, `1` or `yes` select remote
    postings, any other value selects on-site ones.
    """
    return services.OpportunityService(store).list(
        type=type, location=location, is_remote=parse_bool(isRemote), search=search
    )


@app.get('/opportunities/my/applications')
def my_applications(store: DocumentStore = Depends(get_store), user: models.User = Depends(get_current_user)):
    return services.OpportunityService(store).my_applications(user.id)


@app.get('/opportunities/{opportunity_id}')
def get_opportunity(opportunity_id: str, store: DocumentStore = Depends(get_store)):
    return services.OpportunityService(store).get(opportunity_id)


@app.post('/opportunities', status_code=201)
def create_opportunity(payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                       admin: models.User = Depends(require_admin)):
    return services.OpportunityService(store).create(payload, admin.id)


@app.put('/opportunities/{opportunity_id}')
def update_opportunity(opportunity_id: str, payload: Dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store),
                       admin: models.User = Depends(require_admin)):
    return services.OpportunityService(store).update(opportunity_id, payload)


@app.delete('/opportunities/{opportunity_id}')
def delete_opportunity(opportunity_id: str, store: DocumentStore = Depends(get_store),
                       admin: models.User = Depends(require_admin)):
    services.OpportunityService(store).delete(opportunity_id)
    return {'message': 'Opportunity removed'}


@app.post('/opportunities/{opportunity_id}/apply')
def apply_for_opportunity(opportunity_id: str, store: DocumentStore = Depends(get_store),
                          user: models.User = Depends(get_current_user)):
    entry = services.OpportunityService(store).apply(opportunity_id, user.id)
    return {'message': 'Application submitted successfully', 'application_id': entry['id']}


@app.put('/opportunities/{opportunity_id}/application/{application_id}')
def update_application_status(opportunity_id: str, application_id: str, payload: Dict[str, Any] = Body(...),
                              store: DocumentStore = Depends(get_store), admin: models.User = Depends(require_admin)):
    services.OpportunityService(store).set_application_status(opportunity_id, application_id, payload.get('status'))
    return {'message': 'Application status updated successfully'}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
