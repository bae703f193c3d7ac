"""nginx reverse-proxy configuration template."""

from typing import List

from jinja2 import Environment

PROXY_CONFIG_TEMPLATE = """# HTTP: serve ACME challenges and redirect everything else to HTTPS
server {
  listen 80;
  server_name {{ server_names }};

  # ACME (must be reachable on port 80 for renewals)
  location /.well-known/acme-challenge/ {
    root {{ webroot }};
  }

  location / {
    return 301 https://$host$request_uri;
  }
}

# HTTPS: terminate TLS and proxy to WordPress
server {
  listen 443 ssl http2;
  server_name {{ server_names }};

  ssl_certificate     /etc/letsencrypt/live/{{ primary_domain }}/fullchain.pem;
  ssl_certificate_key /etc/letsencrypt/live/{{ primary_domain }}/privkey.pem;

  ssl_session_timeout 1d;
  ssl_session_cache shared:MozSSL:10m;
  ssl_protocols TLSv1.2 TLSv1.3;
  ssl_prefer_server_ciphers off;

  location /.well-known/acme-challenge/ {
    root {{ webroot }};
  }

  # Allow larger media uploads
  client_max_body_size 64m;

  location / {
    proxy_pass {{ upstream }};
    proxy_set_header Host $host;
    proxy_set_header X-Real-IP $remote_addr;
    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
    proxy_set_header X-Forwarded-Proto $scheme;
  }
}
"""

_environment = Environment(trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)


def get_proxy_config(domains: List[str], upstream: str, webroot: str = "/var/www/certbot") -> str:
    """Render the proxy configuration; the first domain selects the certificate."""
    template = _environment.from_string(PROXY_CONFIG_TEMPLATE)
    return template.render(
        server_names=" ".join(domains),
        primary_domain=domains[0],
        upstream=upstream,
        webroot=webroot,
    )
