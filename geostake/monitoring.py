# geostake/monitoring.py
import time
import socket
import threading
import logging
from socketserver import ThreadingMixIn
from wsgiref.simple_server import make_server, WSGIServer

import psutil
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app

logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Serves metrics from a background thread."""
    allow_reuse_address = True
    daemon_threads = True


class Monitor:
    def __init__(self, registry, host="127.0.0.1", port=9090):
        """
        Args:
            registry: the geostake Registry whose state is reported
        """
        self.registry = registry
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated collector registry so several monitors can coexist in one process
        self.collectors = CollectorRegistry()

        self.operations = Counter('geostake_operations_total', 'Operations applied, by kind and outcome',
                                  ['op', 'status'], registry=self.collectors)
        self.latency = Histogram('geostake_operation_latency_seconds', 'Time to apply an operation',
                                 ['op'], registry=self.collectors)
        self.live_tokens = Gauge('geostake_live_tokens', 'Tokens currently minted and not burned',
                                 registry=self.collectors)
        self.last_token_id = Gauge('geostake_last_token_id', 'Highest token id ever allocated',
                                   registry=self.collectors)
        self.height = Gauge('geostake_height', 'Current sequence number', registry=self.collectors)
        self.cpu_usage = Gauge('system_cpu_percent', 'Current CPU usage percent', registry=self.collectors)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent',
                                  registry=self.collectors)

    def start_server(self, max_retries: int = 5, retry_delay: float = 2):
        """Starts the Prometheus HTTP endpoint, retrying while the port is busy."""
        app = make_wsgi_app(self.collectors)

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == 98 and attempt < max_retries - 1:  # Address already in use
                    logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s "
                                   f"(attempt {attempt + 1}/{max_retries})...")
                    time.sleep(retry_delay)
                else:
                    logger.error(f"Failed to bind metrics server to port {self.port}: {e}")
                    raise

    def stop_server(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Prometheus server stopped.")

    def update(self):
        """Refresh gauges from registry state and the host process."""
        stats = self.registry.stats()
        self.live_tokens.set(stats['live_tokens'])
        self.last_token_id.set(stats['last_token_id'])
        self.height.set(stats['height'])

        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)

    def record_operation(self, op: str, status: str, latency: float):
        self.operations.labels(op=op, status=status).inc()
        self.latency.labels(op=op).observe(latency)
