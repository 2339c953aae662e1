import json
import argparse
from pathlib import Path
from google_auth_oauthlib.flow import InstalledAppFlow, Flow

# reminder and calendar-invite emails only need send access
SCOPES = ['https://www.googleapis.com/auth/gmail.send']

def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description='Write the Gmail token used for reminder and invite emails (GOOGLE_TOKEN_FILE).')
    p.add_argument('--client', required=True, help='Path to OAuth client secret JSON (downloaded from Google Cloud).')
    p.add_argument('--out', default='token.json', help='Where to write the token (default: token.json)')
    p.add_argument('--port', type=int, default=8080, help='Local server port for OAuth callback (default: 8080)')
    return p.parse_args()


def load_client_config(path: str) -> dict:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    for kind in ('installed', 'web'):
        if kind in data:
            return {kind: data[kind]}
    raise RuntimeError('Invalid client secret JSON: expected top-level key "installed" or "web"')


def web_flow(cfg: dict, port: int):
    redirect_uri = f'http://localhost:{port}/'
    if not any((u or '').startswith('http://localhost') for u in cfg['web'].get('redirect_uris', [])):
        raise SystemExit(f'[ERROR] Add {redirect_uri} as a redirect URI on the OAuth client, or use a "Desktop app" client.')
    flow = Flow.from_client_config(cfg, scopes=SCOPES, redirect_uri=redirect_uri)
    auth_url, _ = flow.authorization_url(prompt='consent', access_type='offline')
    print('Open this URL in your browser and authorize:')
    print(auth_url)
    flow.fetch_token(authorization_response=input('Paste the full redirect URL here: ').strip())
    return flow.credentials


def main():
    args = parse_args()
    cfg = load_client_config(args.client)
    if 'installed' in cfg:
        creds = InstalledAppFlow.from_client_config(cfg, SCOPES).run_local_server(port=args.port)
    else:
        creds = web_flow(cfg, args.port)
    Path(args.out).write_text(creds.to_json(), encoding='utf-8')
    print(f'[OK] Wrote {Path(args.out).resolve()}; point GOOGLE_TOKEN_FILE at it')


if __name__ == '__main__':
    main()
