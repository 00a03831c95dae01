import asyncio
import atexit
import logging
import os
import threading

from dotenv import load_dotenv
from flask import Flask, request, jsonify

from assistant import Assistant, SubmitRejected
from gemini_service import GeminiGateway

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

REJECT_STATUS = {
    "empty": 400,
    "busy": 409,
    "unavailable": 503,
}


class AssistantHost:
    """Runs one Assistant on a private event loop thread.

    Request threads hand coroutines to the loop, so every change to the
    conversation happens on that single thread.
    """

    def __init__(self, gateway_factory=GeminiGateway.from_env):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name="assistant-loop", daemon=True,
        )
        self._thread.start()
        self._closed = False
        self.assistant = self.run(self._start(gateway_factory))

    def _run_loop(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    async def _start(self, gateway_factory):
        return Assistant.start(gateway_factory)

    def run(self, coro, timeout=None):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, func, *args):
        async def invoke():
            return func(*args)
        return self.run(invoke())

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.run(self.assistant.close())
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join()
        self.loop.close()


def create_app(gateway_factory=GeminiGateway.from_env):
    app = Flask(__name__)
    host = AssistantHost(gateway_factory)
    app.extensions["assistant_host"] = host
    atexit.register(host.close)

    def rejected(e):
        logger.info("Rejected submit: %s", e.reason)
        return jsonify({"error": str(e), "reason": e.reason}), REJECT_STATUS[e.reason]

    @app.route("/")
    def index():
        return HTML_PAGE

    @app.route("/api/state")
    def state():
        return jsonify(host.call(host.assistant.snapshot))

    @app.route("/api/chat", methods=["POST"])
    def chat():
        data = request.get_json(silent=True) or {}
        text = data.get("text", "")

        try:
            host.run(host.assistant.send_message(text))
        except SubmitRejected as e:
            return rejected(e)
        return jsonify(host.call(host.assistant.snapshot))

    @app.route("/api/inspiration", methods=["POST"])
    def inspiration():
        """Append the placeholder and return at once; the page polls /api/state."""
        try:
            placeholder_id = host.run(host.assistant.start_inspiration())
        except SubmitRejected as e:
            return rejected(e)
        body = host.call(host.assistant.snapshot)
        body["placeholderId"] = placeholder_id
        return jsonify(body), 202

    return app


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>RWANDA TOUR AI</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    height: 100vh;
    display: flex;
    flex-direction: column;
    overflow: hidden;
  }

  header {
    padding: 16px 24px;
    border-bottom: 1px solid #1e1e1e;
    flex-shrink: 0;
    text-align: center;
  }
  header h1 {
    font-size: 1.3rem;
    font-weight: 700;
    color: #60a5fa;
    letter-spacing: 0.5px;
  }

  main {
    flex: 1;
    overflow-y: auto;
    padding: 20px 24px;
    display: flex;
    flex-direction: column;
    gap: 18px;
  }

  .row { display: flex; align-items: flex-end; gap: 8px; }
  .row.user { justify-content: flex-end; }

  .avatar {
    width: 32px; height: 32px;
    border-radius: 50%;
    display: flex;
    align-items: center;
    justify-content: center;
    font-size: 0.75rem;
    font-weight: 700;
    color: #fff;
    flex-shrink: 0;
  }
  .avatar.user { background: #3b82f6; }
  .avatar.model { background: #14b8a6; }

  .bubble {
    max-width: 42rem;
    padding: 12px 16px;
    border-radius: 16px;
    line-height: 1.6;
    font-size: 0.9rem;
    word-break: break-word;
  }
  .row.user .bubble { background: #3b82f6; color: #fff; border-bottom-right-radius: 0; }
  .row.model .bubble { background: #1a1a1a; border: 1px solid #2a2a2a; border-bottom-left-radius: 0; }

  .bubble ul { margin: 6px 0 6px 20px; }
  .bubble code {
    background: #2a2a2a;
    border-radius: 4px;
    padding: 1px 4px;
    font-size: 0.82rem;
  }
  .bubble img {
    display: block;
    margin-top: 12px;
    width: 100%;
    border-radius: 10px;
    object-fit: cover;
  }

  .image-loader {
    margin-top: 12px;
    width: 100%;
    aspect-ratio: 16 / 9;
    border-radius: 10px;
    background: #2a2a2a;
    animation: pulse 1.4s ease-in-out infinite;
  }
  @keyframes pulse { 50% { opacity: 0.4; } }

  .loading {
    display: flex;
    align-items: center;
    gap: 10px;
    color: #888;
  }
  .spinner {
    width: 16px; height: 16px;
    border: 2px solid #333;
    border-top-color: #14b8a6;
    border-radius: 50%;
    animation: spin 0.8s linear infinite;
  }
  @keyframes spin { to { transform: rotate(360deg); } }

  .banner {
    align-self: center;
    max-width: 28rem;
    border: 1px solid #ef4444;
    color: #fca5a5;
    background: #1a1111;
    border-radius: 10px;
    padding: 10px 16px;
    font-size: 0.85rem;
    display: none;
  }
  .banner.visible { display: block; }

  footer {
    border-top: 1px solid #1e1e1e;
    padding: 14px 24px;
    flex-shrink: 0;
  }
  form { display: flex; gap: 10px; align-items: center; }

  textarea {
    flex: 1;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 16px;
    padding: 12px 14px;
    font-size: 0.9rem;
    font-family: inherit;
    resize: none;
    outline: none;
    max-height: 10rem;
    transition: border-color 0.2s;
  }
  textarea:focus { border-color: #3b82f6; }
  textarea::placeholder { color: #555; }

  button {
    background: #3b82f6;
    color: #fff;
    border: none;
    border-radius: 999px;
    padding: 10px 18px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #2563eb; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }
  button.inspire { background: #facc15; color: #1f2937; }
  button.inspire:hover { background: #eab308; }
</style>
</head>
<body>
<header><h1>RWANDA TOUR AI</h1></header>

<main id="log"></main>

<footer>
  <form id="chatForm">
    <button type="button" class="inspire" id="inspireBtn" aria-label="Generate travel inspiration">Inspire me</button>
    <textarea id="input" rows="1" placeholder="Ask about your next destination..."></textarea>
    <button type="submit" id="sendBtn">Send</button>
  </form>
</footer>

<script>
  const logEl = document.getElementById('log');
  const formEl = document.getElementById('chatForm');
  const inputEl = document.getElementById('input');
  const sendBtn = document.getElementById('sendBtn');
  const inspireBtn = document.getElementById('inspireBtn');

  let state = { messages: [], busy: false, chatEnabled: false, inspirationState: 'idle', error: null };
  let pollTimer = null;

  // ── API call helper ──
  async function callApi(path, options) {
    const res = await fetch(path, options);
    const data = await res.json();
    if (!res.ok) throw new Error(data.error || 'HTTP ' + res.status);
    return data;
  }

  function escapeHtml(text) {
    const div = document.createElement('div');
    div.textContent = text;
    return div.innerHTML;
  }

  function bubbleRow(role, content) {
    const row = document.createElement('div');
    row.className = 'row ' + role;

    const avatar = document.createElement('div');
    avatar.className = 'avatar ' + role;
    avatar.textContent = role === 'user' ? 'Y' : 'AI';

    const bubble = document.createElement('div');
    bubble.className = 'bubble';
    if (content !== null) bubble.innerHTML = content;

    if (role === 'user') { row.append(bubble, avatar); } else { row.append(avatar, bubble); }
    return { row, bubble };
  }

  function render() {
    logEl.innerHTML = '';

    for (const m of state.messages) {
      const { row, bubble } = bubbleRow(m.role, m.html);
      if (m.isLoadingImage) {
        const loader = document.createElement('div');
        loader.className = 'image-loader';
        bubble.appendChild(loader);
      } else if (m.imageUrl) {
        const img = document.createElement('img');
        img.src = m.imageUrl;
        img.alt = 'Travel inspiration';
        bubble.appendChild(img);
      }
      logEl.appendChild(row);
    }

    const last = state.messages[state.messages.length - 1];
    if (state.busy && last && last.role === 'user') {
      const { row } = bubbleRow('model', '<div class="loading"><div class="spinner"></div>Thinking...</div>');
      logEl.appendChild(row);
    }

    const banner = document.createElement('div');
    banner.className = 'banner' + (state.error ? ' visible' : '');
    banner.innerHTML = '<strong>Error: </strong>';
    banner.appendChild(document.createTextNode(state.error || ''));
    logEl.appendChild(banner);

    const locked = state.busy || !state.chatEnabled;
    inputEl.disabled = locked;
    inspireBtn.disabled = locked;
    sendBtn.disabled = locked || !inputEl.value.trim();

    logEl.scrollTop = logEl.scrollHeight;
  }

  function apply(data) {
    state = data;
    render();
    if (state.inspirationState !== 'idle') startPolling(); else stopPolling();
  }

  async function refresh() {
    try {
      apply(await callApi('/api/state'));
    } catch (e) {
      state.error = e.message;
      render();
    }
  }

  function startPolling() {
    if (!pollTimer) pollTimer = setInterval(refresh, 1000);
  }

  function stopPolling() {
    clearInterval(pollTimer);
    pollTimer = null;
  }

  async function sendMessage() {
    const text = inputEl.value.trim();
    if (!text || state.busy || !state.chatEnabled) return;

    inputEl.value = '';
    state.messages.push({ role: 'user', html: escapeHtml(text) });
    state.busy = true;
    state.error = null;
    render();

    try {
      apply(await callApi('/api/chat', {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify({ text }),
      }));
    } catch (e) {
      await refresh();
      state.error = e.message;
      render();
    }
  }

  async function generateInspiration() {
    if (state.busy || !state.chatEnabled) return;
    inspireBtn.disabled = true;

    try {
      apply(await callApi('/api/inspiration', { method: 'POST' }));
    } catch (e) {
      await refresh();
      state.error = e.message;
      render();
    }
  }

  formEl.addEventListener('submit', e => { e.preventDefault(); sendMessage(); });
  inspireBtn.addEventListener('click', generateInspiration);
  inputEl.addEventListener('input', () => { sendBtn.disabled = state.busy || !inputEl.value.trim(); });
  inputEl.addEventListener('keydown', e => {
    if (e.key === 'Enter' && !e.shiftKey) { e.preventDefault(); sendMessage(); }
  });

  refresh();
</script>
</body>
</html>
"""

if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"), format=LOG_FORMAT)
    create_app().run(debug=True, port=int(os.environ.get("PORT", "5001")), threaded=True)
