"""Local web chat interface over the ContextFlow runtime."""

from __future__ import annotations

import base64
import binascii

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from src.contextflow.core.observability import setup_logging
from src.contextflow.runtime.service import get_runtime_service

app = FastAPI(title="ContextFlow Local Chat")


class RegisterRequest(BaseModel):
    name: str = ""
    username: str
    password: str


class LoginRequest(BaseModel):
    username: str
    password: str


class ProfileUpdateRequest(BaseModel):
    name: str
    role: str
    preferences: str = ""
    avatar: str | None = None


class FileUploadRequest(BaseModel):
    name: str
    content_base64: str
    mime_type: str | None = None
    auto_summarize: bool | None = None


class FileQueryRequest(BaseModel):
    file_name: str


class ChatRequest(BaseModel):
    message: str


@app.on_event("startup")
def _init_runtime() -> None:
    setup_logging()
    get_runtime_service().start(source="app")


@app.on_event("shutdown")
def _stop_runtime() -> None:
    get_runtime_service().stop(source="app")


@app.get("/health")
def health() -> dict:
    return get_runtime_service().health()


@app.get("/api/session")
def session() -> dict:
    return get_runtime_service().session()


@app.post("/api/auth/register")
def register(req: RegisterRequest) -> dict:
    return get_runtime_service().register(name=req.name, username=req.username, password=req.password)


@app.post("/api/auth/login")
def login(req: LoginRequest) -> dict:
    return get_runtime_service().login(username=req.username, password=req.password)


@app.post("/api/auth/logout")
def logout() -> dict:
    return get_runtime_service().logout()


@app.get("/api/profile")
def get_profile() -> dict:
    return get_runtime_service().get_profile()


@app.put("/api/profile")
def update_profile(req: ProfileUpdateRequest) -> dict:
    return get_runtime_service().update_profile(
        name=req.name,
        role=req.role,
        preferences=req.preferences,
        avatar=req.avatar,
    )


@app.get("/api/files")
def list_files() -> dict:
    return get_runtime_service().list_files()


@app.post("/api/files")
def upload_file(req: FileUploadRequest) -> dict:
    try:
        raw = base64.b64decode(req.content_base64, validate=True)
    except (binascii.Error, ValueError):
        return {"ok": False, "route": "validation", "error": "File content must be base64 encoded."}
    return get_runtime_service().upload_file(
        name=req.name,
        raw=raw,
        mime_type=req.mime_type,
        auto_summarize=req.auto_summarize,
    )


@app.delete("/api/files/{file_id}")
def delete_file(file_id: str) -> dict:
    return get_runtime_service().delete_file(file_id=file_id)


@app.post("/api/files/query")
def query_file(req: FileQueryRequest) -> dict:
    return get_runtime_service().query_file(file_name=req.file_name)


@app.post("/api/files/visualize")
def visualize_file(req: FileQueryRequest) -> dict:
    return get_runtime_service().visualize_file(file_name=req.file_name)


@app.post("/api/chat")
def chat(req: ChatRequest) -> dict:
    return get_runtime_service().chat(message=req.message)


@app.post("/api/chat/new")
def new_chat() -> dict:
    return get_runtime_service().new_chat()


@app.get("/api/messages")
def list_messages() -> dict:
    return get_runtime_service().list_messages()


@app.get("/api/tasks")
def list_tasks() -> dict:
    return get_runtime_service().list_tasks()


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
    html = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>ContextFlow</title>
  <style>
    :root {
      --bg: #0f1218;
      --panel: #171b24;
      --ink: #e6e9ef;
      --muted: #8a93a6;
      --accent: #6366f1;
      --line: #262c3a;
      --user: #252a4a;
      --bot: #1d2230;
    }
    * { box-sizing: border-box; }
    body {
      margin: 0;
      min-height: 100vh;
      font-family: system-ui, sans-serif;
      color: var(--ink);
      background: var(--bg);
      display: flex;
      justify-content: center;
      padding: 20px;
    }
    .hidden { display: none !important; }
    .panel {
      background: var(--panel);
      border: 1px solid var(--line);
      border-radius: 16px;
      padding: 16px;
    }
    .auth { width: min(420px, 100%); align-self: center; }
    .app {
      width: min(1200px, 100%);
      height: calc(100vh - 40px);
      display: grid;
      grid-template-columns: 280px 1fr 300px;
      gap: 14px;
    }
    .chat { display: grid; grid-template-rows: 1fr auto; min-height: 0; }
    .log { overflow-y: auto; display: flex; flex-direction: column; gap: 10px; }
    .msg { padding: 10px 12px; border-radius: 12px; white-space: pre-wrap; max-width: 85%; }
    .msg.user { background: var(--user); align-self: flex-end; }
    .msg.assistant { background: var(--bot); align-self: flex-start; }
    .source { color: var(--muted); font-size: 12px; margin-top: 6px; }
    .bar-row { display: flex; align-items: center; gap: 8px; font-size: 12px; margin: 2px 0; }
    .bar { height: 10px; background: var(--accent); border-radius: 4px; }
    form { display: flex; gap: 8px; margin-top: 10px; }
    .stack { flex-direction: column; }
    input, textarea, button {
      font: inherit;
      color: var(--ink);
      background: var(--bg);
      border: 1px solid var(--line);
      border-radius: 10px;
      padding: 8px 10px;
    }
    input[type=text], textarea { flex: 1; }
    button { background: var(--accent); border: none; cursor: pointer; }
    button.ghost { background: transparent; border: 1px solid var(--line); }
    ul { list-style: none; padding: 0; margin: 0; }
    li { padding: 6px 0; border-bottom: 1px solid var(--line); font-size: 14px; }
    h3 { margin: 14px 0 8px; font-size: 13px; text-transform: uppercase; color: var(--muted); }
  </style>
</head>
<body>
  <div id="auth" class="panel auth">
    <h2>ContextFlow</h2>
    <form id="loginForm" class="stack">
      <input id="loginUser" type="text" placeholder="Username" autocomplete="username">
      <input id="loginPass" type="password" placeholder="Password" autocomplete="current-password">
      <button type="submit">Log in</button>
    </form>
    <h3>New here?</h3>
    <form id="registerForm" class="stack">
      <input id="regName" type="text" placeholder="Display name">
      <input id="regUser" type="text" placeholder="Username">
      <input id="regPass" type="password" placeholder="Password">
      <button type="submit" class="ghost">Register</button>
    </form>
  </div>

  <div id="app" class="app hidden">
    <aside class="panel">
      <div id="who"></div>
      <h3>Knowledge base</h3>
      <input id="fileInput" type="file" accept=".csv,.txt,.json,.md,.pdf,.doc,.docx,.xlsx,.xlsm,.xls,.ppt,.pptx">
      <ul id="files"></ul>
      <h3>Profile</h3>
      <form id="profileForm" class="stack">
        <input id="profName" type="text" placeholder="Name">
        <input id="profRole" type="text" placeholder="Role">
        <textarea id="profPrefs" rows="3" placeholder="Preferences"></textarea>
        <button type="submit" class="ghost">Save profile</button>
      </form>
      <form class="stack">
        <button type="button" class="ghost" id="newChat">New chat</button>
        <button type="button" class="ghost" id="logout">Log out</button>
      </form>
    </aside>
    <section class="panel chat">
      <div id="log" class="log"></div>
      <form id="chatForm">
        <input id="chatInput" type="text" placeholder="Ask about your files...">
        <button id="sendBtn" type="submit">Send</button>
      </form>
    </section>
    <aside class="panel">
      <h3>Tasks</h3>
      <ul id="tasks"></ul>
    </aside>
  </div>

<script>
async function api(method, path, body) {
  const res = await fetch(path, {
    method,
    headers: { "Content-Type": "application/json" },
    body: body === undefined ? undefined : JSON.stringify(body),
  });
  return res.json();
}

function el(tag, cls, text) {
  const node = document.createElement(tag);
  if (cls) node.className = cls;
  if (text !== undefined) node.textContent = text;
  return node;
}

function renderChart(viz) {
  const box = el("div");
  box.appendChild(el("strong", "", viz.title || "Chart"));
  const yKey = viz.yAxisKey || "value";
  const values = viz.data.map(point => Number(point[yKey]) || 0);
  const max = Math.max(1, ...values);
  viz.data.forEach((point, i) => {
    const row = el("div", "bar-row");
    row.appendChild(el("span", "", String(point[viz.xAxisKey] ?? i)));
    const bar = el("div", "bar");
    bar.style.width = Math.round((values[i] / max) * 160) + "px";
    row.appendChild(bar);
    row.appendChild(el("span", "", String(values[i])));
    box.appendChild(row);
  });
  return box;
}

function renderMessage(msg) {
  const node = el("div", "msg " + msg.role, msg.content);
  if (msg.visualization) node.appendChild(renderChart(msg.visualization));
  if (msg.data_source) node.appendChild(el("div", "source", "Source: " + msg.data_source));
  document.getElementById("log").appendChild(node);
  node.scrollIntoView({ block: "end" });
}

async function refresh() {
  const snap = await api("GET", "/api/session");
  const state = snap.state;
  document.getElementById("auth").classList.toggle("hidden", state.is_authenticated);
  document.getElementById("app").classList.toggle("hidden", !state.is_authenticated);
  if (!state.is_authenticated) return;

  document.getElementById("who").textContent = state.profile.name + " - " + state.profile.role;
  document.getElementById("profName").value = state.profile.name;
  document.getElementById("profRole").value = state.profile.role;
  document.getElementById("profPrefs").value = state.profile.preferences;

  const log = document.getElementById("log");
  log.innerHTML = "";
  state.messages.forEach(renderMessage);

  const files = document.getElementById("files");
  files.innerHTML = "";
  state.files.forEach(file => {
    const li = el("li", "", file.name + " ");
    const ask = el("button", "ghost", "Ask");
    ask.onclick = () => send(() => api("POST", "/api/files/query", { file_name: file.name }));
    const chart = el("button", "ghost", "Chart");
    chart.onclick = () => send(() => api("POST", "/api/files/visualize", { file_name: file.name }));
    const del = el("button", "ghost", "Delete");
    del.onclick = async () => {
      if (!confirm('Remove "' + file.name + '" from the knowledge base?')) return;
      await api("DELETE", "/api/files/" + file.id);
      refresh();
    };
    li.append(ask, chart, del);
    files.appendChild(li);
  });

  const tasks = document.getElementById("tasks");
  tasks.innerHTML = "";
  state.tasks.forEach(task => {
    tasks.appendChild(el("li", "", task.title + " [" + task.status + "] " + task.due_date.slice(0, 16)));
  });
}

async function send(call) {
  const btn = document.getElementById("sendBtn");
  btn.disabled = true;
  try {
    const out = await call();
    if (!out.ok && out.error) alert(out.error);
  } finally {
    btn.disabled = false;
    refresh();
  }
}

document.getElementById("loginForm").onsubmit = async (e) => {
  e.preventDefault();
  const out = await api("POST", "/api/auth/login", {
    username: document.getElementById("loginUser").value,
    password: document.getElementById("loginPass").value,
  });
  if (!out.ok) alert(out.error);
  refresh();
};

document.getElementById("registerForm").onsubmit = async (e) => {
  e.preventDefault();
  const out = await api("POST", "/api/auth/register", {
    name: document.getElementById("regName").value,
    username: document.getElementById("regUser").value,
    password: document.getElementById("regPass").value,
  });
  alert(out.ok ? out.message : out.error);
};

document.getElementById("profileForm").onsubmit = async (e) => {
  e.preventDefault();
  const out = await api("PUT", "/api/profile", {
    name: document.getElementById("profName").value,
    role: document.getElementById("profRole").value,
    preferences: document.getElementById("profPrefs").value,
  });
  alert(out.ok ? out.message : out.error);
  refresh();
};

document.getElementById("chatForm").onsubmit = (e) => {
  e.preventDefault();
  const input = document.getElementById("chatInput");
  const message = input.value;
  if (!message.trim()) return;
  input.value = "";
  renderMessage({ role: "user", content: message });
  send(() => api("POST", "/api/chat", { message }));
};

document.getElementById("fileInput").onchange = (e) => {
  const file = e.target.files[0];
  if (!file) return;
  const reader = new FileReader();
  reader.onload = () => {
    const encoded = String(reader.result).split(",")[1] || "";
    send(() => api("POST", "/api/files", { name: file.name, mime_type: file.type || null, content_base64: encoded }));
    e.target.value = "";
  };
  reader.readAsDataURL(file);
};

document.getElementById("newChat").onclick = async () => {
  if (!confirm("Clear the current conversation?")) return;
  await api("POST", "/api/chat/new");
  refresh();
};

document.getElementById("logout").onclick = async () => {
  await api("POST", "/api/auth/logout");
  refresh();
};

refresh();
</script>
</body>
</html>
"""
    return HTMLResponse(content=html, headers={"Cache-Control": "no-store, max-age=0"})
