"""Browser debug console for SENAVISION.

Serves a Leaflet page over HTTP and talks to it over a WebSocket. The page
shows the route, position, microphone state, spoken prompts and logs, and
can feed the session: map clicks become GPS fixes, typed text becomes a
transcript, and buttons simulate screen taps and recognizer events.
"""

import asyncio
import http.server
import json
import queue
import socketserver
import threading
import time
import webbrowser
from functools import partial
from typing import Callable, Optional

import websockets

from .config import CONFIG
from .console import ConsoleRecognizer
from .models import GpsFix


DEBUG_GUI_HTML = '''<!DOCTYPE html>
<html>
<head>
    <title>SENAVISION Debug</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; height: 100vh; display: flex; flex-direction: column; }
        header { background: #1e293b; color: white; padding: 12px 20px; display: flex; justify-content: space-between; align-items: center; }
        header h1 { font-size: 18px; font-weight: 600; }
        .status-badge { background: #22c55e; padding: 4px 12px; border-radius: 12px; font-size: 12px; }
        .status-badge.disconnected { background: #ef4444; }
        .main-content { display: flex; flex: 1; overflow: hidden; }
        #map { flex: 1; min-width: 0; }
        .debug-panel { width: 420px; background: #f8fafc; display: flex; flex-direction: column; border-left: 1px solid #e2e8f0; }
        .panel-section { padding: 14px; border-bottom: 1px solid #e2e8f0; }
        .panel-section h2 { font-size: 12px; text-transform: uppercase; color: #64748b; margin-bottom: 10px; letter-spacing: 0.5px; }
        .state-grid { display: grid; grid-template-columns: 1fr 1fr; gap: 10px; }
        .state-item { background: white; padding: 8px; border-radius: 6px; border: 1px solid #e2e8f0; }
        .state-label { font-size: 11px; color: #64748b; margin-bottom: 4px; }
        .state-value { font-size: 14px; font-weight: 600; color: #1e293b; word-break: break-word; }
        .voice-input { display: flex; gap: 6px; margin-bottom: 8px; }
        .voice-input input { flex: 1; padding: 6px; border: 1px solid #cbd5e1; border-radius: 4px; }
        button { padding: 6px 10px; border: none; border-radius: 4px; background: #3b82f6; color: white; cursor: pointer; font-size: 12px; }
        button.secondary { background: #64748b; }
        .instructions { max-height: 140px; overflow-y: auto; font-size: 13px; }
        .instructions li { margin: 3px 0 3px 16px; }
        .logs-section { flex: 1; display: flex; flex-direction: column; min-height: 0; }
        .logs-container { flex: 1; overflow-y: auto; padding: 12px; background: #1e293b; font-family: "SF Mono", Monaco, monospace; font-size: 12px; }
        .log-entry { color: #94a3b8; margin-bottom: 6px; line-height: 1.4; }
        .log-entry .timestamp { color: #64748b; }
        .log-entry .message { color: #e2e8f0; }
        .log-entry .data { color: #38bdf8; }
        .audio-section { background: #fef3c7; }
        .audio-section h2 { color: #92400e; }
        .audio-text { font-size: 14px; color: #78350f; font-weight: 500; min-height: 20px; }
        .click-hint { position: absolute; bottom: 20px; left: 50%; transform: translateX(-50%); background: rgba(0,0,0,0.8); color: white; padding: 8px 16px; border-radius: 20px; font-size: 13px; z-index: 1000; pointer-events: none; }
        .marker-current { background: #ef4444; border: 3px solid white; border-radius: 50%; width: 16px; height: 16px; box-shadow: 0 2px 6px rgba(0,0,0,0.3); }
    </style>
</head>
<body>
    <header>
        <h1>SENAVISION Debug</h1>
        <span id="connection-status" class="status-badge disconnected">Disconnected</span>
    </header>
    <div class="main-content">
        <div id="map">
            <div class="click-hint">Click on map to send a GPS fix</div>
        </div>
        <div class="debug-panel">
            <div class="panel-section">
                <h2>Voice</h2>
                <div class="voice-input">
                    <input id="transcript" placeholder="Say something (e.g. halo, ke monas, navigasi)" />
                    <button onclick="sendTranscript()">Say</button>
                </div>
                <button class="secondary" onclick="send('gesture', {})">Tap screen</button>
                <button class="secondary" onclick="send('recognition_end', {})">Recognizer end</button>
                <button class="secondary" onclick="send('recognition_error', {code: 'not-allowed'})">Deny mic</button>
                <button class="secondary" onclick="send('recognition_error', {code: 'no-speech'})">No speech</button>
            </div>
            <div class="panel-section">
                <h2>State</h2>
                <div class="state-grid">
                    <div class="state-item"><div class="state-label">Microphone</div><div class="state-value" id="mic-state">-</div></div>
                    <div class="state-item"><div class="state-label">Navigating</div><div class="state-value" id="navigating">-</div></div>
                    <div class="state-item"><div class="state-label">Destination</div><div class="state-value" id="destination">-</div></div>
                    <div class="state-item"><div class="state-label">GPS</div><div class="state-value" id="gps-status">-</div></div>
                    <div class="state-item"><div class="state-label">Distance Traveled</div><div class="state-value" id="traveled">0 m</div></div>
                    <div class="state-item"><div class="state-label">Accuracy</div><div class="state-value" id="accuracy">-</div></div>
                </div>
                <ol class="instructions" id="instructions"></ol>
            </div>
            <div class="panel-section audio-section">
                <h2>Spoken</h2>
                <div class="audio-text" id="audio-text">-</div>
            </div>
            <div class="panel-section logs-section">
                <h2>Logs</h2>
                <div class="logs-container" id="logs"></div>
            </div>
        </div>
    </div>
    <script>
        var map = L.map('map').setView([-7.5565, 110.8315], 14);
        L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
            attribution: '&copy; OpenStreetMap contributors'
        }).addTo(map);

        var ws = null;
        var routeLayer = null;
        var currentMarker = null;
        var currentIcon = L.divIcon({className: 'marker-current', iconSize: [16, 16], iconAnchor: [8, 8]});

        function connect() {
            ws = new WebSocket('ws://localhost:{{WS_PORT}}');
            ws.onopen = function() {
                document.getElementById('connection-status').textContent = 'Connected';
                document.getElementById('connection-status').classList.remove('disconnected');
                addLog('Connected');
            };
            ws.onclose = function() {
                document.getElementById('connection-status').textContent = 'Disconnected';
                document.getElementById('connection-status').classList.add('disconnected');
                setTimeout(connect, 2000);
            };
            ws.onmessage = function(event) {
                var msg = JSON.parse(event.data);
                if (msg.type === 'route') displayRoute(msg.data);
                else if (msg.type === 'state') updateState(msg.data);
                else if (msg.type === 'log') addLog(msg.data.message, msg.data.data);
                else if (msg.type === 'audio') document.getElementById('audio-text').textContent = msg.data.text;
            };
        }

        function send(type, data) {
            if (ws && ws.readyState === WebSocket.OPEN) {
                ws.send(JSON.stringify({type: type, data: data}));
            }
        }

        function sendTranscript() {
            var input = document.getElementById('transcript');
            if (input.value.trim()) {
                send('transcript', {text: input.value.trim()});
                input.value = '';
            }
        }
        document.getElementById('transcript').addEventListener('keydown', function(e) {
            if (e.key === 'Enter') sendTranscript();
        });

        function displayRoute(data) {
            if (routeLayer) map.removeLayer(routeLayer);
            routeLayer = L.layerGroup().addTo(map);
            if (data.polyline && data.polyline.length > 0) {
                var line = L.polyline(data.polyline, {color: '#3b82f6', weight: 5, opacity: 0.8}).addTo(routeLayer);
                map.fitBounds(line.getBounds(), {padding: [40, 40]});
            }
            if (data.waypoints) {
                L.circleMarker(data.waypoints[1], {radius: 9, fillColor: '#22c55e', color: '#fff', weight: 3, fillOpacity: 1})
                    .addTo(routeLayer).bindPopup(data.name || 'Destination');
            }
        }

        function updateState(state) {
            document.getElementById('mic-state').textContent = state.microphone ? state.microphone.state : '-';
            document.getElementById('navigating').textContent = state.is_navigating ? 'yes' : 'no';
            document.getElementById('destination').textContent = state.destination ? state.destination.name : '-';
            document.getElementById('gps-status').textContent = state.gps_status || '-';
            document.getElementById('traveled').textContent = Math.round(state.distance_traveled || 0) + ' m';
            document.getElementById('accuracy').textContent = state.location ? Math.round(state.location.accuracy) + ' m' : '-';
            if (state.location) {
                var pos = [state.location.lat, state.location.lng];
                if (currentMarker) currentMarker.setLatLng(pos);
                else currentMarker = L.marker(pos, {icon: currentIcon}).addTo(map);
            }
            var list = document.getElementById('instructions');
            list.innerHTML = '';
            (state.instructions || []).forEach(function(item) {
                var li = document.createElement('li');
                li.textContent = item[0] + ' (' + item[1] + ')';
                list.appendChild(li);
            });
        }

        function addLog(message, data) {
            var logs = document.getElementById('logs');
            var entry = document.createElement('div');
            entry.className = 'log-entry';
            var html = '<span class="timestamp">[' + new Date().toLocaleTimeString() + ']</span> <span class="message">' + message + '</span>';
            if (data) html += ' <span class="data">' + JSON.stringify(data) + '</span>';
            entry.innerHTML = html;
            logs.appendChild(entry);
            logs.scrollTop = logs.scrollHeight;
            while (logs.children.length > 200) logs.removeChild(logs.firstChild);
        }

        map.on('click', function(e) {
            send('location', {lat: e.latlng.lat, lng: e.latlng.lng, accuracy: 5});
            addLog('Clicked location: ' + e.latlng.lat.toFixed(5) + ', ' + e.latlng.lng.toFixed(5));
        });

        connect();
    </script>
</body>
</html>'''


class DebugServer:
    """HTTP and WebSocket server for the debug page"""

    def __init__(self, http_port: Optional[int] = None, ws_port: Optional[int] = None,
                 open_browser: bool = True):
        self.http_port = http_port or CONFIG["debug_http_port"]
        self.ws_port = ws_port or CONFIG["debug_ws_port"]
        self.open_browser = open_browser
        self.location_queue: queue.Queue = queue.Queue()
        self.http_thread = None
        self.ws_thread = None
        self.ws_loop = None
        self.connected_clients: set = set()
        self.on_message: Optional[Callable[[str, dict], None]] = None
        self._running = False

    def start(self):
        """Start HTTP and WebSocket servers in background threads"""
        self._running = True

        self.http_thread = threading.Thread(target=self._run_http_server, daemon=True)
        self.http_thread.start()

        self.ws_thread = threading.Thread(target=self._run_ws_server, daemon=True)
        self.ws_thread.start()

        # Give servers time to start
        time.sleep(0.5)

        url = f"http://localhost:{self.http_port}"
        print(f"Debug GUI available at: {url}")
        if self.open_browser:
            webbrowser.open(url)

    def _run_http_server(self):
        """Run the HTTP server for serving the page"""
        handler = partial(_DebugHTTPHandler, self.ws_port)
        socketserver.TCPServer.allow_reuse_address = True
        with socketserver.TCPServer(("", self.http_port), handler) as httpd:
            httpd.timeout = 0.5
            while self._running:
                httpd.handle_request()

    def handle_incoming(self, raw: str):
        """Route one message from the page (runs on the WebSocket thread)"""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            return
        msg_type = message.get("type")
        data = message.get("data") or {}
        if msg_type == "location":
            try:
                self.location_queue.put(GpsFix(
                    lat=float(data["lat"]),
                    lng=float(data.get("lng", data.get("lon"))),
                    accuracy=float(data.get("accuracy", 5)),
                    timestamp=time.time(),
                ))
            except (KeyError, TypeError, ValueError):
                return
        elif self.on_message:
            self.on_message(msg_type, data)

    def _run_ws_server(self):
        """Run the WebSocket server"""
        self.ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.ws_loop)

        async def handler(websocket):
            self.connected_clients.add(websocket)
            try:
                async for message in websocket:
                    self.handle_incoming(message)
            finally:
                self.connected_clients.discard(websocket)

        async def main():
            try:
                async with websockets.serve(handler, "localhost", self.ws_port):
                    while self._running:
                        await asyncio.sleep(0.1)
            except OSError as e:
                print(f"WebSocket server error: {e}")

        self.ws_loop.run_until_complete(main())

    def _send_message(self, msg_type: str, data: dict):
        """Send a message to all connected WebSocket clients"""
        if not self.connected_clients or not self.ws_loop:
            return

        message = json.dumps({"type": msg_type, "data": data}, default=str)

        async def send_to_all():
            for client in list(self.connected_clients):
                try:
                    await client.send(message)
                except websockets.ConnectionClosed:
                    self.connected_clients.discard(client)

        asyncio.run_coroutine_threadsafe(send_to_all(), self.ws_loop)

    def send_route(self, route_data: dict):
        """Send route to browser for display"""
        self._send_message("route", route_data)

    def send_state(self, state: dict):
        """Send state update to browser"""
        self._send_message("state", state)

    def send_log(self, message: str, data: Optional[dict] = None):
        """Send log message to browser"""
        self._send_message("log", {"message": message, "data": data})

    def send_audio(self, text: str):
        """Send spoken text to browser"""
        self._send_message("audio", {"text": text})

    def get_clicked_location(self, timeout: float = 30) -> Optional[GpsFix]:
        """Block until user clicks on map"""
        try:
            return self.location_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self):
        """Stop the servers"""
        self._running = False


class _DebugHTTPHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler that serves the debug page"""

    def __init__(self, ws_port: int, *args, **kwargs):
        self.ws_port = ws_port
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path == '/' or self.path == '/index.html':
            self.send_response(200)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            html = DEBUG_GUI_HTML.replace('{{WS_PORT}}', str(self.ws_port))
            self.wfile.write(html.encode())
        else:
            self.send_error(404)

    def log_message(self, format, *args):
        pass  # Suppress HTTP log messages


class WebSocketGPS:
    """Location source fed by map clicks on the debug page"""

    def __init__(self, debug_server: DebugServer):
        self.server = debug_server
        self.last_location: Optional[GpsFix] = None
        self.consecutive_failures = 0

    def get_location(self, timeout: int = 30, fresh: bool = False) -> Optional[GpsFix]:
        """Block until a location is clicked on the map"""
        location = self.server.get_clicked_location(timeout=timeout)
        if location:
            self.last_location = location
            self.consecutive_failures = 0
            return location
        if self.last_location and fresh:
            return self.last_location
        self.consecutive_failures += 1
        return None

    def get_status(self) -> str:
        return "Debug GUI (click map to set location)"


class DebugRecognizer(ConsoleRecognizer):
    """Recognizer driven by the debug page instead of stdin"""

    EVENT_LINES = {
        "gesture": lambda data: ":tap",
        "recognition_end": lambda data: ":end",
        "recognition_error": lambda data: f":error {data.get('code', 'network')}",
        "transcript": lambda data: str(data.get("text", "")).strip(),
    }

    def __init__(self, scheduler, debug_server: DebugServer):
        super().__init__(scheduler, stream=None)
        self.server = debug_server
        self.server.on_message = self._on_page_message

    def open(self):
        pass

    def _on_page_message(self, msg_type: str, data: dict):
        to_line = self.EVENT_LINES.get(msg_type)
        if to_line is None:
            return
        line = to_line(data)
        if line:
            self.scheduler.call_threadsafe(self.feed, line)
