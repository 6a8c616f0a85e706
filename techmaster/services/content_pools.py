"""
Canned section content used when the generation service is unavailable or
leaves a section out.

Every pool is a tuple of read-only mappings. A pick returns a fresh dict so
callers may attach fields without touching the pool.
"""

import logging
import random
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from techmaster.models.content import NewsItem, TECH_NEWS_TITLE


def _freeze(*entries: Dict[str, str]) -> Tuple[Mapping[str, str], ...]:
    return tuple(MappingProxyType(dict(e)) for e in entries)


SECTION_TITLES: Mapping[str, str] = MappingProxyType({
    "techNews": TECH_NEWS_TITLE,
    "dsaChallenge": "💡 DSA Problem Solving",
    "dbmsConcept": "🗄️ Database Management Deep Dive",
    "osExplained": "🖥️ Operating Systems Deep Dive",
    "cnFundamentals": "🌐 Computer Networks Explained",
    "oopsConcepts": "🎯 Object-Oriented Programming",
    "aptitudeCorner": "🧮 Aptitude Corner",
    "communicationTips": "🗣️ Communication Tips for Developers",
    "motivationalQuote": "✨ Weekly Motivation",
})


OS_CONCEPTS = _freeze(
    {
        "concept": "Process Scheduling Algorithms",
        "realWorldAnalogy": (
            "Think of a hospital emergency room where patients with different urgency levels need "
            "attention. The triage nurse (scheduler) decides who gets treated first based on priority, "
            "just like how the OS scheduler decides which process gets CPU time."
        ),
        "technicalExplanation": (
            "Process scheduling algorithms determine the order in which processes are executed. Key "
            "algorithms include: 1) First-Come-First-Serve (FCFS), 2) Shortest Job First (SJF), "
            "3) Round Robin, and 4) Priority Scheduling. Modern OS use multilevel feedback queues "
            "combining multiple algorithms."
        ),
        "whyItMatters": (
            "Efficient scheduling directly impacts system performance, responsiveness, and user "
            "experience. Poor scheduling can lead to starvation or poor throughput."
        ),
    },
    {
        "concept": "Virtual Memory Management",
        "realWorldAnalogy": (
            "Imagine your desk (RAM) is small, but you have a large filing cabinet (hard drive). When "
            "you need a document not on your desk, you swap it with something you're not currently "
            "using. Virtual memory works similarly, swapping data between RAM and storage."
        ),
        "technicalExplanation": (
            "Virtual memory allows systems to use more memory than physically available by using disk "
            "storage as an extension. Key components include page tables, the Translation Lookaside "
            "Buffer (TLB), and page replacement algorithms like LRU."
        ),
        "whyItMatters": (
            "Virtual memory enables running large applications on systems with limited RAM, provides "
            "memory protection between processes, and allows efficient memory sharing."
        ),
    },
)

DSA_PROBLEMS = _freeze(
    {
        "leetCodeInfo": "LeetCode #1. Two Sum - Easy",
        "problemStatement": (
            "Given an array of integers nums and an integer target, return indices of the two numbers "
            "such that they add up to target."
        ),
        "intuition": (
            "The key insight is to use a hash map to store numbers we've seen and their indices. For "
            "each number, we check if its complement (target - current_number) exists in our map. "
            "This avoids a nested loop."
        ),
        "stepByStepApproach": (
            "1. Create a HashMap.\n2. Iterate through the array.\n"
            "3. Calculate complement = target - current number.\n"
            "4. If complement is in the map, return its index and the current index.\n"
            "5. Otherwise, add the current number and its index to the map."
        ),
        "codeExample": (
            "class Solution {\n"
            "  public int[] twoSum(int[] nums, int target) {\n"
            "    Map<Integer, Integer> map = new HashMap<>();\n"
            "    for (int i = 0; i < nums.length; i++) {\n"
            "      int complement = target - nums[i];\n"
            "      if (map.containsKey(complement)) {\n"
            "        return new int[]{map.get(complement), i};\n"
            "      }\n"
            "      map.put(nums[i], i);\n"
            "    }\n"
            "    return new int[]{}; // No solution\n"
            "  }\n"
            "}\n"
            "// Time: O(n), Space: O(n)"
        ),
    },
    {
        "leetCodeInfo": "LeetCode #121. Best Time to Buy and Sell Stock - Easy",
        "problemStatement": (
            "You are given an array where prices[i] is the price of a stock on day i. Find the maximum "
            "profit by choosing a single day to buy and a different day in the future to sell."
        ),
        "intuition": (
            "We want to find the lowest buy price and the highest sell price after that day. We can "
            "solve this in one pass by tracking the minimum price seen so far and the maximum profit "
            "found."
        ),
        "stepByStepApproach": (
            "1. Initialize minPrice to the first price and maxProfit to 0.\n"
            "2. Iterate through the prices.\n"
            "3. If the current price is less than minPrice, update minPrice.\n"
            "4. Otherwise, calculate the potential profit and update maxProfit if it's higher."
        ),
        "codeExample": (
            "class Solution {\n"
            "  public int maxProfit(int[] prices) {\n"
            "    int minPrice = Integer.MAX_VALUE;\n"
            "    int maxProfit = 0;\n"
            "    for (int price : prices) {\n"
            "      if (price < minPrice) {\n"
            "        minPrice = price;\n"
            "      } else if (price - minPrice > maxProfit) {\n"
            "        maxProfit = price - minPrice;\n"
            "      }\n"
            "    }\n"
            "    return maxProfit;\n"
            "  }\n"
            "}\n"
            "// Time: O(n), Space: O(1)"
        ),
    },
)

DBMS_CONCEPTS = _freeze(
    {
        "topic": "Normalization",
        "explanation": (
            "Normalization is the process of organizing the columns and tables of a relational "
            "database to minimize data redundancy and improve data integrity. It involves a series of "
            "guidelines called normal forms (1NF, 2NF, 3NF, BCNF, etc.)."
        ),
        "sqlQuestion": (
            "Consider a table `Orders (OrderID, CustomerName, CustomerAddress, OrderDate, ProductName, "
            "Quantity, Price)`. Identify the issues and normalize this table to 3NF."
        ),
        "sqlSolution": (
            "-- 2NF/3NF: split customer and product data out of Orders\n"
            "CREATE TABLE Customers (\n"
            "    CustomerID INT PRIMARY KEY AUTO_INCREMENT,\n"
            "    CustomerName VARCHAR(255),\n"
            "    CustomerAddress VARCHAR(255)\n"
            ");\n\n"
            "CREATE TABLE Products (\n"
            "    ProductID INT PRIMARY KEY AUTO_INCREMENT,\n"
            "    ProductName VARCHAR(255),\n"
            "    Price DECIMAL(10, 2)\n"
            ");\n\n"
            "CREATE TABLE Orders (\n"
            "    OrderID INT PRIMARY KEY AUTO_INCREMENT,\n"
            "    CustomerID INT,\n"
            "    OrderDate DATE,\n"
            "    FOREIGN KEY (CustomerID) REFERENCES Customers(CustomerID)\n"
            ");\n\n"
            "CREATE TABLE OrderDetails (\n"
            "    OrderDetailID INT PRIMARY KEY AUTO_INCREMENT,\n"
            "    OrderID INT,\n"
            "    ProductID INT,\n"
            "    Quantity INT,\n"
            "    FOREIGN KEY (OrderID) REFERENCES Orders(OrderID),\n"
            "    FOREIGN KEY (ProductID) REFERENCES Products(ProductID)\n"
            ");"
        ),
        "benefits": "Reduces data redundancy, improves data integrity, simplifies database maintenance.",
    },
    {
        "topic": "ACID Properties",
        "explanation": (
            "ACID (Atomicity, Consistency, Isolation, Durability) is a set of properties that guarantee "
            "that database transactions are processed reliably. Atomicity ensures all or nothing. "
            "Consistency ensures valid state. Isolation ensures concurrent transactions don't "
            "interfere. Durability ensures committed data survives failures."
        ),
        "sqlQuestion": (
            "Explain a scenario where violating one of the ACID properties could lead to data "
            "corruption or inconsistency. Provide a simple example."
        ),
        "sqlSolution": (
            "-- Atomicity: a transfer must debit and credit together\n"
            "BEGIN TRANSACTION;\n"
            "UPDATE Accounts SET Balance = Balance - 100 WHERE AccountID = 'A';\n"
            "-- a crash here must not leave A debited without B credited\n"
            "UPDATE Accounts SET Balance = Balance + 100 WHERE AccountID = 'B';\n"
            "COMMIT;\n\n"
            "-- Isolation: a dirty read of uncommitted data\n"
            "BEGIN TRANSACTION;\n"
            "UPDATE Accounts SET Balance = Balance - 100 WHERE AccountID = 'X';\n"
            "-- another transaction reads 900 here\n"
            "ROLLBACK; -- balance reverts to 1000, the reader now holds stale data"
        ),
        "benefits": "Ensures data reliability, integrity, and consistency in transactional systems.",
    },
)

CN_CONCEPTS = _freeze(
    {
        "concept": "TCP vs UDP",
        "everydayExample": (
            "Imagine sending a very important package (TCP) vs. shouting across a crowded room (UDP). "
            "With the package, you get confirmation it arrived, and if not, you resend. Shouting, you "
            "just hope they heard you."
        ),
        "technicalDetails": (
            "TCP (Transmission Control Protocol) is connection-oriented, reliable, ordered, and "
            "error-checked. It uses handshakes, acknowledgements, and retransmissions. UDP (User "
            "Datagram Protocol) is connectionless, unreliable, and faster. It just sends data without "
            "guarantees."
        ),
        "practicalImportance": (
            "TCP is used for web browsing (HTTP/HTTPS), email (SMTP), file transfer (FTP) where "
            "reliability is crucial. UDP is used for streaming video/audio, online gaming, DNS where "
            "speed is more important than guaranteed delivery of every packet."
        ),
    },
    {
        "concept": "DNS (Domain Name System)",
        "everydayExample": (
            "Think of DNS as the internet's phonebook. When you type a website name like google.com, "
            "DNS translates that human-readable name into an IP address (like 172.217.160.142) that "
            "computers understand."
        ),
        "technicalDetails": (
            "DNS is a hierarchical and decentralized naming system. When you type a URL, your computer "
            "queries a local DNS resolver, which then queries root, TLD, and authoritative nameservers "
            "to find the correct IP address. Results are cached to speed up future lookups."
        ),
        "practicalImportance": (
            "DNS is fundamental to how the internet works, enabling users to access websites and "
            "services using memorable domain names instead of complex IP addresses. Without it, "
            "navigating the web would be nearly impossible."
        ),
    },
)

OOPS_CONCEPTS = _freeze(
    {
        "principle": "Encapsulation",
        "realLifeAnalogy": (
            "Think of a car. You know how to drive it (accelerate, brake, steer), but you don't need to "
            "know how the engine works internally to operate it. The internal complexities are hidden, "
            "and you interact through a well-defined interface (steering wheel, pedals)."
        ),
        "codeExample": (
            "// Java Example\n"
            "public class BankAccount {\n"
            "    private double balance; // internal state hidden\n\n"
            "    public BankAccount(double initialBalance) {\n"
            "        this.balance = Math.max(0, initialBalance);\n"
            "    }\n\n"
            "    public void deposit(double amount) {\n"
            "        if (amount > 0) {\n"
            "            this.balance += amount;\n"
            "        }\n"
            "    }\n\n"
            "    public void withdraw(double amount) {\n"
            "        if (amount > 0 && this.balance >= amount) {\n"
            "            this.balance -= amount;\n"
            "        }\n"
            "    }\n\n"
            "    public double getBalance() {\n"
            "        return this.balance;\n"
            "    }\n"
            "}"
        ),
        "bestPractices": (
            "1. Declare instance variables as private.\n"
            "2. Provide public getter and setter methods for controlled access.\n"
            "3. Use constructors to initialize objects safely."
        ),
    },
    {
        "principle": "Inheritance",
        "realLifeAnalogy": (
            "Consider a family tree. Children inherit traits from their parents. In programming, a "
            "\"child\" class can inherit properties and methods from a \"parent\" class, reusing code "
            "and establishing a natural hierarchy."
        ),
        "codeExample": (
            "// Java Example\n"
            "class Vehicle {\n"
            "    String brand = \"Ford\";\n"
            "    public void honk() {\n"
            "        System.out.println(\"Tuut, tuut!\");\n"
            "    }\n"
            "}\n\n"
            "class Car extends Vehicle {\n"
            "    String modelName = \"Mustang\";\n"
            "    public static void main(String[] args) {\n"
            "        Car myCar = new Car();\n"
            "        myCar.honk(); // Inherited method\n"
            "        System.out.println(myCar.brand + \" \" + myCar.modelName);\n"
            "    }\n"
            "}\n"
            "// Output:\n"
            "// Tuut, tuut!\n"
            "// Ford Mustang"
        ),
        "bestPractices": (
            "1. Use inheritance for \"is-a\" relationships.\n"
            "2. Avoid deep inheritance hierarchies.\n"
            "3. Favor composition over inheritance when appropriate."
        ),
    },
)

APTITUDE_CONCEPTS = _freeze(
    {
        "topic": "Time and Work (Quantitative Aptitude)",
        "introduction": (
            "Time and Work problems involve calculating the time taken by individuals or groups to "
            "complete a certain amount of work. The core idea is that work done is directly "
            "proportional to time taken and efficiency."
        ),
        "formulaExplanation": (
            "If a person can do a piece of work in 'n' days, then the work done by that person in one "
            "day is 1/n. If two people A and B can do a work in 'x' and 'y' days respectively, together "
            "they can do it in (x*y)/(x+y) days."
        ),
        "solvedExample": (
            "Problem: A can do a piece of work in 10 days and B can do the same work in 15 days. How "
            "many days will they take to complete the work together?\n\n"
            "Solution:\n"
            "1. Work done by A in one day = 1/10\n"
            "2. Work done by B in one day = 1/15\n"
            "3. Work done by (A+B) in one day = 1/10 + 1/15 = 5/30 = 1/6\n"
            "4. Therefore, A and B together will complete the work in 6 days."
        ),
        "quickTricks": (
            "For two people, use (Product of days) / (Sum of days). For more, find individual one-day "
            "work and sum them up, then take reciprocal."
        ),
    },
    {
        "topic": "Blood Relations (Logical Reasoning)",
        "introduction": (
            "Blood Relations questions test your understanding of family relationships. You need to "
            "deduce the relationship between two members based on given information. It's like solving "
            "a family puzzle!"
        ),
        "formulaExplanation": (
            "No specific formulas, but understanding common relations is key: Father's father = "
            "Paternal Grandfather, Mother's brother = Maternal Uncle, Son's wife = Daughter-in-law, "
            "etc. Drawing a family tree diagram helps immensely."
        ),
        "solvedExample": (
            "Problem: Pointing to a photograph, a man said, 'I have no brother or sister, but that "
            "man's father is my father's son.' Whose photograph was it?\n\n"
            "Solution:\n"
            "1. 'My father's son': since the man has no brother or sister, his father's son is himself.\n"
            "2. So, the statement becomes: 'That man's father is myself.'\n"
            "3. Therefore, the man in the photograph is the speaker's son.\n\n"
            "Answer: His son's photograph."
        ),
        "quickTricks": (
            "1. Break down the statement into smaller parts.\n"
            "2. Start from the end of the statement and work backward.\n"
            "3. Draw a family tree if the relationships are complex."
        ),
    },
)

COMMUNICATION_TIPS = _freeze(
    {
        "topic": "Active Listening",
        "advice": (
            "Active listening is about fully concentrating on what is being said rather than just "
            "passively hearing the message. It involves paying attention to both verbal and non-verbal "
            "cues, asking clarifying questions, and summarizing to confirm understanding."
        ),
        "importance": (
            "Improves understanding, builds trust, reduces misunderstandings, and makes the speaker "
            "feel valued. Essential for effective teamwork and client interactions."
        ),
    },
    {
        "topic": "Clear and Concise Writing",
        "advice": (
            "In professional communication, especially in emails or documentation, aim for clarity and "
            "conciseness. Get straight to the point, use simple language, avoid jargon where possible, "
            "and structure your thoughts logically with headings and bullet points."
        ),
        "importance": (
            "Saves time for both the writer and reader, reduces ambiguity, ensures your message is "
            "understood quickly, and projects professionalism. Crucial for technical documentation and "
            "project updates."
        ),
    },
)

MOTIVATIONAL_QUOTES = _freeze(
    {
        "quote": "The only way to do great work is to love what you do.",
        "author": "Steve Jobs",
        "reflection": (
            "Passion fuels innovation. When you genuinely enjoy your craft, challenges become "
            "opportunities, and dedication comes naturally, leading to exceptional outcomes in your "
            "development journey."
        ),
    },
    {
        "quote": "Success is not final, failure is not fatal: it is the courage to continue that counts.",
        "author": "Winston Churchill",
        "reflection": (
            "In the world of tech, setbacks are inevitable. This quote reminds us that resilience and "
            "persistence are paramount. Every bug fixed, every failed deployment analyzed, is a step "
            "forward, not a definitive end."
        ),
    },
)

FALLBACK_TECH_STORY: Mapping[str, str] = MappingProxyType({
    "headline": "AI-Powered Tools Reshape Software Engineering",
    "summary": "AI tools are changing how developers write code, boosting productivity.",
    "techImpact": "Focus is shifting to architecture over syntax.",
    "futureImplications": "The developer role will emphasize creativity and AI collaboration.",
})

# Section key -> pool, for the eight sections that have one
SECTION_POOLS: Mapping[str, Tuple[Mapping[str, str], ...]] = MappingProxyType({
    "dsaChallenge": DSA_PROBLEMS,
    "dbmsConcept": DBMS_CONCEPTS,
    "osExplained": OS_CONCEPTS,
    "cnFundamentals": CN_CONCEPTS,
    "oopsConcepts": OOPS_CONCEPTS,
    "aptitudeCorner": APTITUDE_CONCEPTS,
    "communicationTips": COMMUNICATION_TIPS,
    "motivationalQuote": MOTIVATIONAL_QUOTES,
})


# Section key -> ContentPools picker name
POOL_PICKERS: Mapping[str, str] = MappingProxyType({
    "dsaChallenge": "pick_dsa_problem",
    "dbmsConcept": "pick_dbms_concept",
    "osExplained": "pick_os_concept",
    "cnFundamentals": "pick_cn_concept",
    "oopsConcepts": "pick_oops_concept",
    "aptitudeCorner": "pick_aptitude_concept",
    "communicationTips": "pick_communication_tip",
    "motivationalQuote": "pick_motivational_quote",
})


class ContentPools:
    """
    Random draws from the canned pools.

    The random source is injectable so tests can seed it; by default each
    instance gets its own ``random.Random``.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)

    def _pick(self, section_key: str) -> Dict[str, Any]:
        pool = SECTION_POOLS[section_key]
        entry = self.rng.choice(pool)
        picked: Dict[str, Any] = {"title": SECTION_TITLES[section_key]}
        picked.update(entry)
        return picked

    def pick_os_concept(self) -> Dict[str, Any]:
        return self._pick("osExplained")

    def pick_dsa_problem(self) -> Dict[str, Any]:
        return self._pick("dsaChallenge")

    def pick_dbms_concept(self) -> Dict[str, Any]:
        return self._pick("dbmsConcept")

    def pick_cn_concept(self) -> Dict[str, Any]:
        return self._pick("cnFundamentals")

    def pick_oops_concept(self) -> Dict[str, Any]:
        return self._pick("oopsConcepts")

    def pick_aptitude_concept(self) -> Dict[str, Any]:
        return self._pick("aptitudeCorner")

    def pick_communication_tip(self) -> Dict[str, Any]:
        return self._pick("communicationTips")

    def pick_motivational_quote(self) -> Dict[str, Any]:
        return self._pick("motivationalQuote")

    def pick_for_section(self, section_key: str) -> Dict[str, Any]:
        """Draw from the pool backing ``section_key``."""
        picker = self.pickers().get(section_key)
        if picker is None:
            raise KeyError(f"No content pool for section: {section_key}")
        self.logger.debug("Drawing %s from its fallback pool", section_key)
        return picker()

    def pickers(self) -> Dict[str, Callable[[], Dict[str, Any]]]:
        return {key: getattr(self, name) for key, name in POOL_PICKERS.items()}

    def fallback_tech_news(self, real_news: Iterable[NewsItem]) -> Dict[str, Any]:
        """Placeholder techNews section used when nothing was generated."""
        return {
            "title": SECTION_TITLES["techNews"],
            "stories": [dict(FALLBACK_TECH_STORY)],
            "realNews": list(real_news),
        }
