import base64
import email
import html
import os.path
from datetime import datetime, timezone

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

# If modifying these scopes, delete token.json.
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
DEFAULT_SENDER = "scholaralerts-noreply@google.com"
DEFAULT_LIMIT = 10
MAX_LIMIT = 50


def get_credentials(credentials_file="credentials.json", token_file="token.json"):
    """Loads cached Gmail credentials, refreshing them or running the OAuth flow when needed."""
    creds = None
    # The token file stores the user's access and refresh tokens, and is
    # created automatically when the authorization flow completes for the first
    # time.
    if os.path.exists(token_file):
        creds = Credentials.from_authorized_user_file(token_file, SCOPES)
    # If there are no (valid) credentials available, let the user log in.
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(credentials_file, SCOPES)
            creds = flow.run_local_server(port=0)
        # Save the credentials for the next run
        with open(token_file, "w") as token:
            token.write(creds.to_json())
    return creds


def clamp_limit(limit):
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


def list_message_ids(service, query, limit):
    """Ids of the newest messages matching the query (Gmail lists newest first), at most limit."""
    try:
        response = service.users().messages().list(userId="me", q=query, maxResults=limit).execute()
        messages = list(response.get("messages", []))

        while "nextPageToken" in response and len(messages) < limit:
            response = (
                service.users()
                .messages()
                .list(userId="me", q=query, maxResults=limit, pageToken=response["nextPageToken"])
                .execute()
            )
            messages.extend(response.get("messages", []))
        return [m["id"] for m in messages[:limit]]
    except HttpError as error:
        print(f"An error occurred: {error}")
        return []


def _decode_part(part):
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset)
    except (UnicodeDecodeError, LookupError):
        return payload.decode("utf-8", errors="ignore")


def body_html_from_message(email_message):
    """
    HTML body of a parsed MIME message. A text-only message is wrapped in <pre> (escaped)
    so it can go through the same markup path; no body at all gives "".
    """
    html_body = ""
    text_body = ""
    parts = email_message.walk() if email_message.is_multipart() else [email_message]
    for part in parts:
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        content_disposition = str(part.get("Content-Disposition"))
        if "attachment" in content_disposition:
            continue
        if content_type == "text/html" and not html_body:
            html_body = _decode_part(part)
        elif content_type == "text/plain" and not text_body:
            text_body = _decode_part(part)

    if html_body:
        return html_body
    if text_body:
        return f"<pre>{html.escape(text_body)}</pre>"
    return ""


def record_from_raw_message(message_id, raw_bytes, internal_date_ms=None):
    """
    Builds the mail record handed to the parser:
    {id, receivedAt (ISO-8601 or None), subject, from, rawHtml}.
    """
    email_message = email.message_from_bytes(raw_bytes)

    received_at = None
    if internal_date_ms:
        try:
            received_at = datetime.fromtimestamp(int(internal_date_ms) / 1000, tz=timezone.utc).isoformat()
        except (TypeError, ValueError, OverflowError):
            received_at = None

    return {
        "id": str(message_id),
        "receivedAt": received_at,
        "subject": str(email_message.get("Subject") or ""),
        "from": str(email_message.get("From") or ""),
        "rawHtml": body_html_from_message(email_message),
    }


def get_email_details(service, message_id):
    """Get the full email data for a given message ID."""
    try:
        message = (
            service.users()
            .messages()
            .get(userId="me", id=message_id, format="raw")
            .execute()
        )
        raw_email = base64.urlsafe_b64decode(message["raw"].encode("ASCII"))
        return record_from_raw_message(message_id, raw_email, message.get("internalDate"))
    except HttpError as error:
        print(f"An error occurred while fetching email {message_id}: {error}")
        return None


def get_scholar_alert_emails(limit=DEFAULT_LIMIT, sender=DEFAULT_SENDER, gmail_config=None, service=None):
    """
    Fetches the newest Google Scholar alert emails (at most 50), newest first.
    Pass an existing Gmail service to skip the credential flow.
    """
    gmail_config = gmail_config or {}
    limit = clamp_limit(limit)
    if service is None:
        creds = get_credentials(
            credentials_file=gmail_config.get("credentials_file", "credentials.json"),
            token_file=gmail_config.get("token_file", "token.json"),
        )
        service = build("gmail", "v1", credentials=creds)

    query = f"from:{sender}"
    print(f"Fetching emails with query: {query} (limit {limit})")
    message_ids = list_message_ids(service, query, limit)

    emails_data = []
    if not message_ids:
        print("No messages found.")
    else:
        print(f"Found {len(message_ids)} messages.")
        for message_id in message_ids:
            email_content = get_email_details(service, message_id)
            if email_content:
                emails_data.append(email_content)

    emails_data.sort(key=lambda x: x["receivedAt"] or "", reverse=True)
    return emails_data
