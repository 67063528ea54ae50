"""
JavaScript evaluated inside the rendered page.

Each script is a single arrow function passed to Page.evaluate(); the
viewport script receives its tolerances as one argument object so the
thresholds stay in Settings.
"""

LIVE_FACTS_SCRIPT = """
() => {
    const body = document.body;
    const links = Array.from(document.links);
    return {
        bodyText: body ? body.innerText || '' : '',
        emptyLinks: links.filter(a => !(a.innerText || '').trim() && !a.querySelector('img')).length,
    };
}
"""

VIEWPORT_MEASURE_SCRIPT = """
(opts) => {
    const width = window.innerWidth;
    const doc = document.documentElement;
    const offenders = [];

    const identify = (el) => {
        let id = el.tagName.toLowerCase();
        if (el.id) id += '#' + el.id;
        const cls = typeof el.className === 'string' ? el.className.trim() : '';
        if (cls) id += '.' + cls.split(/\\s+/).join('.');
        return id.substring(0, opts.maxIdentifierLength);
    };

    // body and html count: `body { overflow-x: hidden }` clips its children
    const clipped = (el) => {
        for (let p = el.parentElement; p; p = p.parentElement) {
            const style = getComputedStyle(p);
            if (['hidden', 'clip', 'auto', 'scroll'].includes(style.overflowX)) return true;
        }
        return false;
    };

    const horizontalScroll =
        doc.scrollWidth > width + opts.scrollTolerance &&
        doc.scrollWidth > doc.clientWidth + opts.scrollTolerance;

    let overflowing = 0;
    const flag = (el) => {
        overflowing++;
        offenders.push(identify(el));
    };

    document.querySelectorAll(
        'button, input[type="submit"], a[class*="btn"], a[class*="button"]'
    ).forEach(el => {
        if (el.scrollWidth > el.clientWidth + 1 && !clipped(el)) flag(el);
    });

    document.querySelectorAll('img').forEach(el => {
        const rect = el.getBoundingClientRect();
        if (rect.right > width && rect.left < width && !clipped(el)) flag(el);
    });

    if (document.body) {
        Array.from(document.body.children).forEach(el => {
            const style = getComputedStyle(el);
            if (style.display === 'none' || style.position === 'fixed') return;
            const rect = el.getBoundingClientRect();
            if (rect.width > width + opts.containerTolerance && rect.left < opts.leftEdge && !clipped(el)) {
                flag(el);
            }
        });
    }

    let smallTapTargets = 0;
    if (width < opts.narrowBreakpoint) {
        document.querySelectorAll(
            'a[href], button, input:not([type="hidden"]), select, textarea, [role="button"]'
        ).forEach(el => {
            const style = getComputedStyle(el);
            if (style.visibility === 'hidden' || style.display === 'none') return;
            if (el.tagName === 'A' && style.display === 'inline') return;
            const rect = el.getBoundingClientRect();
            if (rect.width === 0 || rect.height === 0) return;
            const bg = style.backgroundColor;
            const hasBackground = bg && bg !== 'transparent' && !/rgba\\(.*,\\s*0\\)$/.test(bg);
            const hasBorder = parseFloat(style.borderTopWidth) > 0 && style.borderTopStyle !== 'none';
            if (!hasBackground && !hasBorder) return;
            if (rect.width < opts.minTapSize || rect.height < opts.minTapSize) smallTapTargets++;
        });
    }

    return {
        horizontalScroll,
        overflowingElements: overflowing,
        smallTapTargets,
        offenders: Array.from(new Set(offenders)).slice(0, opts.maxOffenders),
    };
}
"""
