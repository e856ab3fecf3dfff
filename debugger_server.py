#!/usr/bin/env python3
"""
JSON-over-HTTP host for a browser front end.

    GET  /state[?init]   machine state (init adds the instruction listing)
    POST /load           {"source": str, "input": str}
    POST /step           {"count": int}  (defaults to steps_per_tick)
    POST /reset          reset and reload the last loaded source/input
    POST /speed          {"value": 0-100} or {"delay": ms, "steps_per_tick": n}

The browser owns the animation timer and just posts /step batches.
"""
import sys
import json
import logging
import argparse
import http.server
import socketserver
import urllib.parse

from machine import Machine, TAPE_SIZE, check_delay, check_steps_per_tick
from ticker import slider_to_speed

logger = logging.getLogger(__name__)

PORT = 8000
TAPE_VIEW_RADIUS = 15


class BadRequest(Exception):
    pass


class Session:
    """The one machine a server drives, plus what to reload it with on reset."""

    def __init__(self, source="", input_text="", tape_size=TAPE_SIZE):
        self.machine = Machine(tape_size=tape_size)
        self.load(source, input_text)

    def load(self, source, input_text=""):
        self.source = source
        self.input_text = input_text
        self.machine.load(source, input_text)

    def reset(self):
        self.machine.reset()
        self.load(self.source, self.input_text)


def state_payload(machine, init=False, radius=TAPE_VIEW_RADIUS):
    start, data = machine.tape_window(radius)
    response = {
        'pc': machine.pc,
        'ptr': machine.ptr,
        'cell': machine.cell(machine.ptr),
        'step_count': machine.step_count,
        'finished': machine.halted,
        'run_state': machine.run_state.value,
        'tape_size': machine.tape_size,
        'program_length': machine.program_length,
        'source_offset': machine.source_offset,
        'output': machine.output,
        'delay': machine.delay,
        'steps_per_tick': machine.steps_per_tick,
        'tape': {'start': start, 'data': data},
    }
    if init:
        response['ops'] = machine.program.instructions
        response['source_map'] = list(machine.program.source_map)
    return response


class MachineHandler(http.server.BaseHTTPRequestHandler):
    session = None

    def send_json(self, payload, status=200):
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header('Content-type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def read_json(self):
        try:
            length = int(self.headers.get('Content-Length') or 0)
        except ValueError:
            raise BadRequest("Content-Length must be an integer")
        if not length:
            return {}
        try:
            data = json.loads(self.rfile.read(length))
        except ValueError:
            raise BadRequest("body is not valid JSON")
        if not isinstance(data, dict):
            raise BadRequest("body must be a JSON object")
        return data

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        parsed_path = urllib.parse.urlparse(self.path)
        if parsed_path.path != '/state':
            self.send_json({'error': f"unknown path {parsed_path.path}"}, 404)
            return
        query = urllib.parse.parse_qs(parsed_path.query, keep_blank_values=True)
        self.send_json(state_payload(self.session.machine, init='init' in query))

    def do_POST(self):
        handlers = {
            '/load': self.post_load,
            '/step': self.post_step,
            '/reset': self.post_reset,
            '/speed': self.post_speed,
        }
        handler = handlers.get(self.path)
        if handler is None:
            self.send_json({'error': f"unknown path {self.path}"}, 404)
            return
        try:
            self.send_json(handler(self.read_json()))
        except BadRequest as e:
            self.send_json({'error': str(e)}, 400)

    def post_load(self, data):
        source = data.get('source', "")
        input_text = data.get('input', "")
        if not isinstance(source, str) or not isinstance(input_text, str):
            raise BadRequest("source and input must be strings")
        self.session.load(source, input_text)
        return state_payload(self.session.machine, init=True)

    def post_step(self, data):
        m = self.session.machine
        count = data.get('count', m.steps_per_tick)
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise BadRequest("count must be a positive integer")
        before = m.step_count
        m.run_batch(count)
        return {'steps_executed': m.step_count - before, 'finished': m.halted}

    def post_reset(self, data):
        self.session.reset()
        return {'status': 'ok'}

    def post_speed(self, data):
        m = self.session.machine
        try:
            if 'value' in data:
                delay, steps = slider_to_speed(data['value'])
            else:
                delay = data.get('delay', m.delay)
                steps = data.get('steps_per_tick', m.steps_per_tick)
            # both checked before either is applied
            delay = check_delay(delay)
            steps = check_steps_per_tick(steps)
        except (TypeError, ValueError, OverflowError) as e:
            raise BadRequest(str(e))
        m.delay = delay
        m.steps_per_tick = steps
        return {'delay': m.delay, 'steps_per_tick': m.steps_per_tick}


def make_handler(session):
    return type('BoundMachineHandler', (MachineHandler,), {'session': session})


class DebuggerServer(socketserver.TCPServer):
    allow_reuse_address = True


def make_server(session, host="", port=PORT):
    return DebuggerServer((host, port), make_handler(session))


def run_server(filename, port=PORT, input_text="", tape_size=TAPE_SIZE):
    with open(filename, 'r') as f:
        code = f.read()
    session = Session(code, input_text, tape_size)

    logger.info("Serving %s (%d ops)", filename, session.machine.program_length)
    print(f"Open http://localhost:{port}/state?init to check the server")

    with make_server(session, port=port) as httpd:
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            pass


def main(argv=None):
    parser = argparse.ArgumentParser(description="Serve a tape machine over HTTP.")
    parser.add_argument('file')
    parser.add_argument('--port', type=int, default=PORT)
    parser.add_argument('--input', default="")
    parser.add_argument('--tape-size', type=int, default=TAPE_SIZE)
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        run_server(args.file, args.port, args.input, args.tape_size)
    except OSError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
