from django.http import HttpResponse, JsonResponse

HOME_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>Crypto Checkout</title>
<style>
    :root {
        font-family: "Inter", -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        color: #0f172a;
        background: #f8fafc;
    }
    body {
        margin: 0;
        min-height: 100vh;
        display: flex;
        align-items: center;
        justify-content: center;
    }
    main {
        width: min(880px, 92vw);
        padding: 2.5rem 3rem;
        border-radius: 24px;
        background: #ffffff;
        border: 1px solid rgba(15, 23, 42, 0.08);
    }
    h1 {
        margin: 0 0 0.75rem;
    }
    ul {
        padding-left: 1.1rem;
        line-height: 1.9;
    }
    code {
        background: rgba(37, 99, 235, 0.08);
        padding: 0.2rem 0.45rem;
        border-radius: 6px;
    }
</style>
</head>
<body>
    <main>
        <h1>Crypto Checkout</h1>
        <p>
            Tax-aware checkout for ETH and USDC payments on Base, with an order review
            surface for fulfilment.
        </p>
        <ul>
            <li><code>POST /api/crypto-payment</code> create a payment and compute tax</li>
            <li><code>POST /api/crypto-payment/&lt;id&gt;/quote</code> lock the asset amount to send</li>
            <li><code>PUT /api/crypto-payment/status</code> report a status transition</li>
            <li><code>POST /api/credits/checkout</code> buy a credits pack</li>
        </ul>
    </main>
</body>
</html>"""


def home(request):
    return HttpResponse(HOME_PAGE_HTML, content_type="text/html; charset=utf-8")


def health(request):
    return JsonResponse({"status": "ok"})
