"""
Vercel Serverless Entry Point for the Outreach API
Using Mangum for ASGI to AWS Lambda adapter
"""
from mangum import Mangum

from outreach.main import app

# Mangum handler for serverless
handler = Mangum(app, lifespan="off")
