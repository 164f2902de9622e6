"""Voice AI Domain - chat gateway and Twilio speech webhooks"""
