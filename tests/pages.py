"""Canned HTML pages used by the tests."""

DDG_RESULTS_HTML = """
<html><body>
<div class="results">
  <div class="result">
    <h2 class="result__title"><a href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fone&amp;rut=x">First Result</a></h2>
    <a class="result__snippet">The first snippet.</a>
  </div>
  <div class="result">
    <h2 class="result__title"><a href="https://example.org/two">Second   Result</a></h2>
    <a class="result__snippet">The second
       snippet.</a>
  </div>
  <div class="result">
    <h2 class="result__title"><a href="/relative/three">Third Result</a></h2>
    <a class="result__snippet">Third snippet.</a>
  </div>
  <div class="result">
    <h2 class="result__title"><a href="https://example.net/four">Fourth Result</a></h2>
  </div>
  <div class="result">
    <h2 class="result__title"><a href="https://example.com/five">Fifth Result</a></h2>
    <a class="result__snippet">Fifth snippet.</a>
  </div>
</div>
</body></html>
"""

DDG_MESSY_HTML = """
<html><body>
  <div class="result"><h2 class="result__title"><a href="https://a.com/x">Kept</a></h2></div>
  <div class="result"><h2 class="result__title"><a>No link</a></h2></div>
  <div class="result"><h2 class="result__title"><a href="https://b.com/y"></a></h2></div>
  <div class="result"><h2 class="result__title"><a href="javascript:void(0)">Script</a></h2></div>
  <div class="result"><h2 class="result__title"><a href="https://a.com/x">Duplicate</a></h2></div>
  <div class="result"><h2 class="result__title"><a href="https://c.com/z">Also kept</a></h2></div>
</body></html>
"""

GOOGLE_RESULTS_HTML = """
<html><body>
  <div class="g">
    <a href="https://www.python.org/"><h3>Welcome to Python.org</h3></a>
    <div><span>The official home of the Python ...</span> more text</div>
  </div>
  <div class="g">
    <a href="/url?q=https://docs.python.org/3/&amp;sa=U"><h3>Python Docs</h3></a>
    <a href="https://docs.python.org/3/">docs</a>
  </div>
</body></html>
"""

BING_RESULTS_HTML = """
<html><body><ol id="b_results">
  <li class="b_algo">
    <h2><a href="https://www.bing-result.com/a">Bing A</a></h2>
    <div class="b_caption"><p>Caption for A.</p></div>
  </li>
  <li class="b_algo">
    <h2><a href="https://www.bing-result.com/b">Bing B</a></h2>
  </li>
</ol></body></html>
"""

ARTICLE_BODY = " ".join(["This sentence belongs to the main article body."] * 6)

ARTICLE_HTML = f"""
<!DOCTYPE html>
<html lang="en-GB">
<head>
  <title>  Sample   Article </title>
  <meta name="description" content="A sample page">
  <meta name="keywords" content="sample, test">
  <meta name="author" content="Jo Writer">
  <meta property="article:published_time" content="2024-01-02T03:04:05Z">
  <link rel="canonical" href="https://a.com/canonical">
</head>
<body>
  <header>Site header</header>
  <nav><a href="/home">Home</a> <a href="mailto:me@a.com">Mail</a></nav>
  <article>
    <h1>Heading</h1>
    <p>{ARTICLE_BODY}</p>
    <div class="ad">Buy things now</div>
    <script>var tracking = 1;</script>
    <p><a href="/x">Relative link</a> and <a href="https://other.org/page">external</a>.</p>
    <img src="/img/one.png" alt="One">
    <img src="data:image/png;base64,AAAA" alt="inline">
  </article>
  <footer>Site footer</footer>
</body>
</html>
"""

SHORT_BODY_HTML = """
<html><head><title>Short</title></head>
<body><article>tiny</article><div>Some body text outside of the article.</div></body></html>
"""

