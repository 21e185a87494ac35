"""
RelayBot - Challenge Page Template
==================================

Minimal Telegram web-app page hosting the Turnstile widget.
"""

import html
import json
from string import Template


CHALLENGE_PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0, maximum-scale=1.0, user-scalable=no">
    <script src="https://telegram.org/js/telegram-web-app.js"></script>
    <script src="https://challenges.cloudflare.com/turnstile/v0/api.js" async defer></script>
    <style>
        body{display:flex;justify-content:center;align-items:center;height:100vh;margin:0;font-family:sans-serif;background-color:var(--tg-theme-bg-color,#fff);color:var(--tg-theme-text-color,#222);}
        #c{background:var(--tg-theme-secondary-bg-color,#f0f0f0);padding:20px;border-radius:12px;text-align:center;width:90%;max-width:360px;}
        #msg{margin-top:20px;font-weight:bold;min-height:24px;}
        .s{color:#2ea043;} .e{color:#da3633;}
    </style>
</head>
<body>
    <div id="c">
        <h3>🛡️ Security Check</h3>
        <div class="cf-turnstile" data-sitekey="$site_key" data-callback="onS" data-expired-callback="onE" data-error-callback="onE"></div>
        <div id="msg"></div>
    </div>
    <script>
        const tg = window.Telegram.WebApp; tg.ready(); try{tg.expand();}catch(e){}
        const msg = document.getElementById('msg');
        const userId = $user_id_json;
        function onS(t) {
            msg.textContent = 'Checking...'; msg.className = '';
            fetch('submit_token', { method:'POST', headers:{'Content-Type':'application/json'}, body:JSON.stringify({token:t, userId:userId}) })
            .then(r=>r.json()).then(d=>{
                if(d.success){
                    msg.textContent = '✅ Passed! This window will close.'; msg.className = 's';
                    setTimeout(()=>tg.close(), 1500);
                } else { msg.textContent = '❌ Failed: ' + (d.error||'unknown'); msg.className = 'e'; }
            }).catch(()=>{ msg.textContent = '❌ Network error'; msg.className = 'e'; });
        }
        function onE(){ msg.textContent = 'Please refresh and try again.'; msg.className = 'e'; }
    </script>
</body>
</html>
""")


def render_challenge_page(site_key: str, user_id: str) -> str:
    """Render the challenge page for one user."""
    return CHALLENGE_PAGE.substitute(
        site_key=html.escape(site_key),
        # </ is escaped so the id cannot close the script element
        user_id_json=json.dumps(str(user_id)).replace("</", "<\\/"),
    )


__all__ = ["render_challenge_page"]
