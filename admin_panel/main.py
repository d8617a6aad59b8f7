import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi import FastAPI, Request, Form, HTTPException, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from fastapi.staticfiles import StaticFiles
from tortoise.contrib.fastapi import register_tortoise
from backend.models.user import User
from backend.models.admin import Admin
from backend.config import DB_URL
from backend.db import MODELS
from backend.service import for_user
from backend.tracker import PersistenceError, ValidationError
import hashlib
import json
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Expander Turn Tracker Admin")

static_dir = os.path.join(os.path.dirname(__file__), "static")
templates_dir = os.path.join(os.path.dirname(__file__), "templates")
templates = Jinja2Templates(directory=templates_dir)
app.mount("/static", StaticFiles(directory=static_dir), name="static")

register_tortoise(
    app,
    db_url=DB_URL,
    modules=MODELS,
    generate_schemas=True,
    add_exception_handlers=True,
)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


async def get_patient(user_id: int) -> User:
    user = await User.get_or_none(id=user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return user


async def render_patient(request: Request, user: User, error: str = None, message: str = None):
    service = for_user(user)
    view = await service.view(history_limit=50)
    notes = await service.list_notes()
    state = await service.current()
    return templates.TemplateResponse(request, "patient_detail.html", {
        "user": user,
        "view": view,
        "settings": state.settings,
        "notes": notes,
        "error": error,
        "message": message,
    }, status_code=400 if error else 200)


@app.get("/")
def root():
    return RedirectResponse("/login")

@app.get("/login")
def login_form(request: Request):
    return templates.TemplateResponse(request, "login.html", {})

@app.post("/login")
async def login(request: Request, username: str = Form(...), password: str = Form(...)):
    logger.info(f"Login attempt: username={username}")
    admin = await Admin.filter(username=username, password_hash=hash_password(password)).first()
    if admin:
        # TODO: keep the admin signed in with a session cookie instead of a bare redirect
        return RedirectResponse("/patients", status_code=status.HTTP_302_FOUND)
    logger.info(f"Login failed for {username}")
    return templates.TemplateResponse(request, "login.html", {
        "error": "Wrong username or password"
    }, status_code=401)

@app.get("/patients")
async def patients(request: Request):
    rows = []
    for user in await User.all().order_by("id"):
        rows.append((user, await for_user(user).view(history_limit=0)))
    return templates.TemplateResponse(request, "patients.html", {"rows": rows})

@app.get("/patient/{user_id}")
async def patient_detail(request: Request, user_id: int):
    user = await get_patient(user_id)
    return await render_patient(request, user)

@app.post("/patient/{user_id}/settings")
async def edit_settings(request: Request, user_id: int,
                        child_name: str = Form("Child"),
                        top_total: int = Form(...),
                        bottom_total: int = Form(...),
                        install_date: str = Form(""),
                        schedule_type: str = Form("every_n_days"),
                        interval_days: int = Form(2),
                        log_together: bool = Form(False)):
    user = await get_patient(user_id)
    try:
        await for_user(user).update_settings(
            child_name=child_name,
            top_total=top_total,
            bottom_total=bottom_total,
            install_date=install_date or None,
            schedule_type=schedule_type,
            interval_days=interval_days,
            log_together=log_together,
        )
    except (ValidationError, PersistenceError) as e:
        return await render_patient(request, user, error=str(e))
    return RedirectResponse(f"/patient/{user_id}", status_code=302)

@app.post("/patient/{user_id}/turns/{turn_id}/delete")
async def delete_turn(request: Request, user_id: int, turn_id: int):
    user = await get_patient(user_id)
    try:
        await for_user(user).undo_by_id(turn_id)
    except PersistenceError as e:
        return await render_patient(request, user, error=str(e))
    return RedirectResponse(f"/patient/{user_id}", status_code=302)

@app.post("/patient/{user_id}/turns/{turn_id}/date")
async def move_turn(request: Request, user_id: int, turn_id: int, new_date: str = Form(...)):
    user = await get_patient(user_id)
    try:
        moved = await for_user(user).edit_date(turn_id, new_date)
    except (ValidationError, PersistenceError) as e:
        return await render_patient(request, user, error=str(e))
    if not moved:
        return await render_patient(request, user, error=f"Turn {turn_id} not found")
    return RedirectResponse(f"/patient/{user_id}", status_code=302)

@app.post("/patient/{user_id}/notes")
async def add_note(request: Request, user_id: int, date: str = Form(...), note: str = Form(...)):
    user = await get_patient(user_id)
    try:
        await for_user(user).add_note(date, note)
    except (ValidationError, PersistenceError) as e:
        return await render_patient(request, user, error=str(e))
    return RedirectResponse(f"/patient/{user_id}", status_code=302)

@app.post("/patient/{user_id}/notes/{note_id}/delete")
async def delete_note(request: Request, user_id: int, note_id: int):
    user = await get_patient(user_id)
    await for_user(user).delete_note(note_id)
    return RedirectResponse(f"/patient/{user_id}", status_code=302)

@app.post("/patient/{user_id}/import-legacy")
async def import_legacy(request: Request, user_id: int, payload: str = Form(...)):
    user = await get_patient(user_id)
    try:
        imported = await for_user(user).import_legacy(json.loads(payload))
    except json.JSONDecodeError as e:
        return await render_patient(request, user, error=f"Not valid JSON: {e}")
    except (ValidationError, PersistenceError) as e:
        return await render_patient(request, user, error=str(e))
    return await render_patient(request, user, message=f"Imported {imported} turn(s) from the old tracker")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
