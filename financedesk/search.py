import logging
from typing import Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

KINDS = ("transaction", "contact", "tag", "nav")

NAV_LINKS = [
    {'title': "Dashboard", 'url': "/"},
    {'title': "Contacts", 'url': "/contacts"},
    {'title': "Settings", 'url': "/settings"},
    {'title': "AI Chat", 'url': "/ai"},
]

NAV_BOOST = 10


def empty_results(error=None) -> dict:
    out = {'transactions': [], 'contacts': [], 'tags': [], 'nav': [], 'all': [], 'total': 0}
    if error:
        out['error'] = error
    return out


def score(field: str, term: str) -> int:
    # exact > starts-with > contains > any word starts-with
    f = field.lower()
    t = term.lower()
    if f == t:
        return 100
    if f.startswith(t):
        return 75
    if t in f:
        return 50
    if any(w.startswith(t) for w in f.split()):
        return 35
    return 0


def best_score(fields: Iterable[Optional[str]], term: str) -> int:
    return max([0] + [score(str(f), term) for f in fields if f])


def search_nav(term: str) -> List[dict]:
    if not term.strip():
        return []
    results = []
    for link in NAV_LINKS:
        s = best_score([link['title'], link['url']], term)
        if s == 0:
            continue
        results.append({
            'kind': "nav",
            'id': f"nav-{link['url']}",
            'title': link['title'],
            'subtitle': link['url'],
            'url': link['url'],
            'score': s + NAV_BOOST,
        })
    return results


def _ilike_any(columns: Sequence[str], term: str) -> str:
    return ",".join(f"{c}.ilike.%{term}%" for c in columns)


def search_transactions(supabase, term: str, limit: int) -> List[dict]:
    try:
        resp = (
            supabase.table('transactions')
            .select("id, title, description, notes, type, amount, currency, payment_status, "
                    "payment_method, transaction_date, reference_number, invoice_number, contact_id")
            .or_(_ilike_any(["title", "description", "notes", "reference_number", "invoice_number"], term))
            .limit(limit)
            .execute()
        )
    except Exception as e:
        logger.error(f"Transaction search failed: {e}")
        return []

    return [
        {
            'kind': "transaction",
            'id': f"txn-{row['id']}",
            'title': row.get('title'),
            'subtitle': row.get('description') or row.get('notes'),
            'url': f"/transactions/{row['id']}",
            'score': best_score([row.get('title'), row.get('description'), row.get('notes'),
                                 row.get('reference_number'), row.get('invoice_number')], term),
            'transaction_type': row.get('type'),
            'amount': float(row.get('amount') or 0),
            'currency': row.get('currency'),
            'payment_status': row.get('payment_status'),
            'payment_method': row.get('payment_method'),
            'date': row.get('transaction_date'),
        }
        for row in (resp.data or [])
    ]


def search_contacts(supabase, term: str, limit: int) -> List[dict]:
    try:
        resp = (
            supabase.table('contacts')
            .select("id, name, type, email, phone, company, category, notes")
            .or_(_ilike_any(["name", "email", "phone", "company", "category", "notes"], term))
            .eq('is_active', True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        logger.error(f"Contact search failed: {e}")
        return []

    return [
        {
            'kind': "contact",
            'id': f"contact-{row['id']}",
            'title': row.get('name'),
            'subtitle': row.get('company') or row.get('email'),
            'url': f"/contacts/{row['id']}",
            'score': best_score([row.get('name'), row.get('email'), row.get('company'),
                                 row.get('category'), row.get('phone')], term),
            'contact_type': row.get('type'),
            'email': row.get('email'),
            'phone': row.get('phone'),
            'company': row.get('company'),
        }
        for row in (resp.data or [])
    ]


def search_tags(supabase, term: str, limit: int) -> List[dict]:
    try:
        resp = supabase.table('tags').select("id, name, color").ilike('name', f"%{term}%").limit(limit).execute()
    except Exception as e:
        logger.error(f"Tag search failed: {e}")
        return []

    return [
        {
            'kind': "tag",
            'id': f"tag-{row['id']}",
            'title': row.get('name'),
            'subtitle': None,
            'url': f"/transactions?tag={row['id']}",
            'score': best_score([row.get('name')], term),
            'color': row.get('color'),
        }
        for row in (resp.data or [])
    ]


def smart_search(supabase, term: str, limit_per_kind: int = 5, min_length: int = 2,
                 kinds: Sequence[str] = KINDS) -> dict:
    """Search transactions, contacts, tags and nav links, merged by score."""
    term = (term or "").strip()
    if len(term) < min_length:
        return empty_results()

    unknown = set(kinds) - set(KINDS)
    if unknown:
        raise ValueError(f"Unknown search kinds: {sorted(unknown)}")

    try:
        txns = search_transactions(supabase, term, limit_per_kind) if "transaction" in kinds else []
        contacts = search_contacts(supabase, term, limit_per_kind) if "contact" in kinds else []
        tags = search_tags(supabase, term, limit_per_kind) if "tag" in kinds else []
        nav = search_nav(term) if "nav" in kinds else []
    except Exception as e:
        logger.error(f"Smart search failed for {term!r}: {e}")
        return empty_results(str(e) or "Search failed")

    everything = sorted(txns + contacts + tags + nav, key=lambda r: r['score'], reverse=True)
    return {
        'transactions': txns,
        'contacts': contacts,
        'tags': tags,
        'nav': nav,
        'all': everything,
        'total': len(everything),
    }
