"""
Curated keyword/pattern table for the fallback categorizer.

Table order is significant: when two categories score the same, the one
listed first wins.
"""
import re

KEYWORD_CATEGORIES = {
    "Technology": {
        "keywords": [
            "aws", "google cloud", "azure", "digitalocean", "heroku", "netlify", "vercel",
            "github", "gitlab", "bitbucket", "slack", "zoom", "microsoft", "adobe", "canva",
            "figma", "notion", "airtable", "zapier", "mailchimp", "sendgrid", "twilio",
            "stripe", "paypal", "razorpay", "google workspace", "office 365", "dropbox",
            "software", "saas", "api", "hosting", "domain", "ssl", "cloudflare",
        ],
        "patterns": [
            r"\b(software|saas|api|cloud|hosting)\b",
            r"\b(app|tech|digital|online)\s+(subscription|service|platform)\b",
        ],
    },
    "Subscriptions": {
        "keywords": [
            "netflix", "spotify", "apple music", "youtube premium", "amazon prime",
            "disney+", "hotstar", "zee5", "voot", "sonyliv", "mx player", "aha",
            "subscription", "monthly", "annual", "recurring", "auto-renewal",
        ],
        "patterns": [
            r"\b(subscription|monthly|annual)\b",
            r"\b(netflix|spotify|prime|disney)\b",
        ],
    },
    "Meals & Entertainment": {
        "keywords": [
            "swiggy", "zomato", "uber eats", "dominos", "pizza hut", "kfc", "mcdonalds",
            "burger king", "subway", "starbucks", "cafe coffee day", "barista",
            "restaurant", "cafe", "food", "dining", "meal", "lunch", "dinner",
            "bookmyshow", "paytm movies", "pvr", "inox", "movie", "cinema", "theatre",
        ],
        "patterns": [
            r"\b(restaurant|cafe|food|dining|meal)\b",
            r"\b(movie|cinema|theatre|entertainment)\b",
            r"\b(swiggy|zomato|uber\s*eats)\b",
        ],
    },
    "Travel": {
        "keywords": [
            "uber", "ola", "rapido", "auto", "taxi", "cab", "metro", "bus", "train",
            "irctc", "makemytrip", "cleartrip", "goibibo", "yatra", "booking.com",
            "airbnb", "oyo", "hotel", "flight", "airline", "indigo", "spicejet",
            "air india", "vistara", "fuel", "petrol", "diesel", "gas station",
        ],
        "patterns": [
            r"\b(uber|ola|taxi|cab|auto)\b",
            r"\b(flight|airline|hotel|travel)\b",
            r"\b(fuel|petrol|diesel|gas)\b",
        ],
    },
    "Shopping": {
        "keywords": [
            "amazon", "flipkart", "myntra", "ajio", "nykaa", "big basket", "grofers",
            "paytm mall", "snapdeal", "jabong", "koovs", "limeroad", "pepperfry",
            "urban ladder", "firstcry", "shopping", "online purchase", "e-commerce",
        ],
        "patterns": [
            r"\b(amazon|flipkart|myntra|shopping)\b",
            r"\b(online\s*(purchase|shopping|store))\b",
        ],
    },
    "Groceries": {
        "keywords": [
            "grocery", "supermarket", "big bazaar", "dmart", "reliance fresh",
            "spencer", "more", "easyday", "hypercity", "star bazaar", "big basket",
            "grofers", "dunzo", "vegetables", "fruits", "milk", "bread",
        ],
        "patterns": [
            r"\b(grocery|supermarket|vegetables|fruits)\b",
            r"\b(big\s*basket|grofers|dunzo)\b",
        ],
    },
    "Utilities": {
        "keywords": [
            "electricity", "electric", "power", "water", "gas", "internet", "broadband",
            "wifi", "jio", "airtel", "vi", "bsnl", "act", "hathway", "den",
            "phone bill", "mobile bill", "recharge", "utility", "bill payment",
        ],
        "patterns": [
            r"\b(electricity|electric|power|water|gas)\b",
            r"\b(internet|broadband|wifi|phone|mobile)\b",
            r"\b(jio|airtel|vi|bsnl)\b",
        ],
    },
    "Salary": {
        "keywords": [
            "salary", "wages", "income", "payroll", "bonus", "increment", "allowance",
            "reimbursement", "commission", "freelance", "consulting", "payment received",
        ],
        "patterns": [
            r"\b(salary|wages|income|payroll)\b",
            r"\b(payment\s*received|freelance|consulting)\b",
        ],
    },
    "Fees": {
        "keywords": [
            "bank charges", "service charges", "processing fee", "convenience fee",
            "transaction fee", "atm fee", "annual fee", "late fee", "penalty",
            "gst", "tax", "tds", "service tax", "cess",
        ],
        "patterns": [
            r"\b(fee|charges|penalty|tax)\b",
            r"\b(gst|tds|service\s*tax|cess)\b",
        ],
    },
}

DEFAULT_GST_RATES = {
    "Technology": 18,
    "Subscriptions": 18,
    "Meals & Entertainment": 5,   # Restaurant services
    "Travel": 5,                  # Transport services
    "Shopping": 18,
    "Groceries": 0,
    "Utilities": 18,
    "Salary": 0,
    "Fees": 18,
}


class CategoryMatcher:
    """One table entry with its keyword and pattern regexes compiled once."""

    def __init__(self, name: str, keywords, patterns):
        self.name = name
        self.keywords = [k.lower() for k in keywords]
        self.word_patterns = [re.compile(rf"\b{re.escape(k)}\b") for k in self.keywords]
        self.patterns = [re.compile(p, re.I) for p in patterns]
        self.max_score = len(self.keywords) + len(self.patterns)

    def score(self, text: str) -> float:
        """
        +1 per keyword found, +0.5 more when it stands alone as a word,
        +1 per pattern match, divided by the number of keywords and patterns.
        """
        if not self.max_score:
            return 0.0
        score = 0.0
        for keyword, word in zip(self.keywords, self.word_patterns):
            if keyword in text:
                score += 1
                if word.search(text):
                    score += 0.5
        score += sum(1 for p in self.patterns if p.search(text))
        return min(score / self.max_score, 1.0)

    def matched_keywords(self, text: str):
        return [k for k in self.keywords if k in text]

    def matched_pattern_count(self, text: str) -> int:
        return sum(1 for p in self.patterns if p.search(text))


def compile_table(table=None):
    table = KEYWORD_CATEGORIES if table is None else table
    return [
        CategoryMatcher(name, entry.get("keywords", []), entry.get("patterns", []))
        for name, entry in table.items()
    ]
